"""Tests for the table resolver."""

import pytest

from entity_tables.config import Tags
from entity_tables.entities import (
    CompositeEntityDefinition,
    EntityDefinition,
    PropertyDefinition,
    Relation,
    RelationKind,
    ScalarType,
)
from entity_tables.resolver import TableResolver, resolve_tables
from entity_tables.tables import (
    ColumnKind,
    DataType,
    ForeignKey,
    Index,
    SchemaResolutionError,
    TableKind,
)


def prop(name, scalar=ScalarType.STRING, *, array=False, optional=False, tags=()):
    return PropertyDefinition(
        name=name, scalar_type=scalar, is_array=array, is_optional=optional, tags=frozenset(tags)
    )


def entity(name, *props, entry=False):
    result = EntityDefinition(name=name, is_entry=entry)
    for p in props:
        result.add_property(p)
    return result


def relate(parent, name, child, many=False):
    parent.add_property(PropertyDefinition(name=name, is_array=many))
    kind = RelationKind.ONE_TO_MANY if many else RelationKind.ONE_TO_ONE
    parent.add_relation(Relation(kind=kind, property_name=name, child=child))


@pytest.fixture
def phase_model():
    """Phase with primitive and entity arrays, as an entry."""
    article = entity(
        "Article",
        prop("articleId", ScalarType.NUMBER),
        prop("title"),
        prop("url", tags=["index"]),
    )
    phase = entity(
        "Phase",
        prop("name"),
        prop("phaseId", ScalarType.NUMBER),
        entry=True,
    )
    relate(phase, "articles", article, many=True)
    phase.add_property(prop("optionalFieldsWork", ScalarType.BOOLEAN, optional=True))
    phase.add_property(prop("values", array=True))
    return phase


class TestPrimaryKeyInference:
    """Tests for primary key selection."""

    def test_tagged_property_wins(self):
        """Test that a tagged property beats an Id-suffixed one."""
        root = entity(
            "User",
            prop("userId", ScalarType.NUMBER),
            prop("email", tags=["primary_key"]),
        )
        table = resolve_tables([root]).get_or_raise("User")

        assert table.primary_key == "email"
        assert table.columns["email"].primary_key
        assert not table.columns["userId"].primary_key

    def test_ambiguous_tagged_primary_key(self):
        """Test that two tagged properties are an error."""
        root = entity(
            "User",
            prop("a", tags=["primary_key"]),
            prop("b", tags=["primary_key"]),
        )
        with pytest.raises(SchemaResolutionError, match="ambiguous primary key"):
            resolve_tables([root])

    def test_tagged_array_primary_key(self):
        """Test that an array cannot be the primary key."""
        root = entity("User", prop("ids", ScalarType.NUMBER, array=True, tags=["primary_key"]))
        with pytest.raises(SchemaResolutionError, match="single scalar"):
            resolve_tables([root])

    def test_single_numeric_id(self):
        """Test that a single numeric *Id property becomes the key."""
        root = entity("Article", prop("title"), prop("articleId", ScalarType.NUMBER))
        assert resolve_tables([root]).get_or_raise("Article").primary_key == "articleId"

    def test_string_id_is_not_inferred(self):
        """Test that only numeric *Id properties are inferred."""
        root = entity("Article", prop("articleId"))
        assert resolve_tables([root]).get_or_raise("Article").primary_key is None

    def test_two_numeric_ids_and_no_children(self):
        """Test that several *Id candidates leave a leaf without a key."""
        root = entity(
            "Link",
            prop("fromId", ScalarType.NUMBER),
            prop("toId", ScalarType.NUMBER),
        )
        assert resolve_tables([root]).get_or_raise("Link").primary_key is None

    def test_generated_primary_key(self):
        """Test that array owners without a key get a generated one."""
        root = entity("Tagged", prop("label"), prop("tags", array=True))
        table = resolve_tables([root]).get_or_raise("Tagged")

        assert table.primary_key == "taggedId"
        column = table.columns["taggedId"]
        assert column.kind is ColumnKind.GENERATED_PRIMARY_KEY
        assert column.data_type is DataType.INTEGER
        assert column.auto_increment
        assert list(table.columns) == ["taggedId", "label"]

    def test_generated_primary_key_avoids_collisions(self):
        """Test that generated key names get numbered suffixes."""
        root = entity(
            "Tagged",
            prop("taggedId"),
            prop("taggedId_2"),
            prop("tags", array=True),
        )
        assert resolve_tables([root]).get_or_raise("Tagged").primary_key == "taggedId_3"

    def test_generated_primary_key_for_relation_owner(self):
        """Test that relation owners without a key get a generated one."""
        child = entity("Child", prop("x"))
        root = entity("Holder", prop("x"))
        relate(root, "child", child)
        assert resolve_tables([root]).get_or_raise("Holder").primary_key == "holderId"


class TestColumns:
    """Tests for column typing and nullability."""

    def test_column_types(self):
        """Test the scalar type to column type mapping."""
        root = entity(
            "Sample",
            prop("flag", ScalarType.BOOLEAN),
            prop("count", ScalarType.NUMBER),
            prop("ratio", ScalarType.NUMBER, tags=["real"]),
            prop("amount", ScalarType.NUMBER, tags=["numeric"]),
            prop("label", ScalarType.STRING),
            prop("when", ScalarType.DATE),
        )
        table = resolve_tables([root]).get_or_raise("Sample")

        assert {name: c.data_type for name, c in table.columns.items()} == {
            "flag": DataType.NUMERIC,
            "count": DataType.INTEGER,
            "ratio": DataType.REAL,
            "amount": DataType.NUMERIC,
            "label": DataType.TEXT,
            "when": DataType.TEXT,
        }

    def test_custom_numeric_tags(self):
        """Test that numeric hints follow the tag vocabulary."""
        root = entity("Sample", prop("ratio", ScalarType.NUMBER, tags=["sqlite_real"]))
        graph = TableResolver(Tags(real="sqlite_real")).resolve([root])
        assert graph.get_or_raise("Sample").columns["ratio"].data_type is DataType.REAL

    def test_optional_property_is_nullable(self):
        """Test that optional properties produce nullable columns."""
        root = entity("Sample", prop("a"), prop("b", optional=True))
        columns = resolve_tables([root]).get_or_raise("Sample").columns
        assert columns["a"].not_null
        assert not columns["b"].not_null

    def test_unique_and_auto_increment(self):
        """Test the unique and auto increment tags."""
        root = entity(
            "Counter",
            prop("counterId", ScalarType.NUMBER, tags=["primary_key", "auto_increment"]),
            prop("code", tags=["unique"]),
        )
        columns = resolve_tables([root]).get_or_raise("Counter").columns
        assert columns["counterId"].auto_increment
        assert columns["code"].unique

    def test_auto_increment_needs_integer_primary_key(self):
        """Test that auto increment is only allowed on an INTEGER key."""
        root = entity(
            "Counter",
            prop("counterId", ScalarType.NUMBER),
            prop("position", ScalarType.NUMBER, tags=["auto_increment"]),
        )
        with pytest.raises(SchemaResolutionError, match="not an INTEGER primary key"):
            resolve_tables([root])

    def test_index_tag(self):
        """Test that indexed properties get a single-column index."""
        root = entity("Article", prop("articleId", ScalarType.NUMBER), prop("url", tags=["index"]))
        table = resolve_tables([root]).get_or_raise("Article")
        assert table.indices == (Index(("url",)),)


class TestRelations:
    """Tests for child tables."""

    def test_leaf_has_no_foreign_keys_or_children(self):
        """Test that an entity without relations or arrays stands alone."""
        root = entity("Leaf", prop("leafId", ScalarType.NUMBER), prop("x"), entry=True)
        graph = resolve_tables([root])
        table = graph.get_or_raise("Leaf")

        assert len(graph) == 1
        assert table.foreign_keys == ()
        assert table.array_table_names == ()
        assert graph.children_of(table) == []
        assert table.kind is TableKind.DEFAULT

    def test_one_to_many_child(self, phase_model):
        """Test the foreign key, array index and uniqueness of a one-to-many child."""
        graph = resolve_tables([phase_model])
        article = graph.get_or_raise("Article")

        assert article.kind is TableKind.ADVANCED_ARRAY
        assert list(article.columns) == ["articleId", "title", "url", "phaseId", "arrayIndex"]
        assert article.columns["phaseId"].kind is ColumnKind.FOREIGN_KEY_FROM_PARENT
        assert article.columns["phaseId"].data_type is DataType.INTEGER
        assert article.columns["phaseId"].not_null
        assert article.columns["arrayIndex"].kind is ColumnKind.ARRAY_INDEX
        assert article.columns["arrayIndex"].not_null
        assert article.foreign_keys == (ForeignKey("phaseId", "Phase", "phaseId"),)
        assert Index(("phaseId", "arrayIndex"), unique=True) in article.indices
        assert article.parent_table_name == "Phase"
        assert article.parent_table_primary_key == "phaseId"
        assert not article.is_entry

    def test_one_to_one_child(self):
        """Test that a one-to-one child gets a foreign key but no array index."""
        child = entity("Profile", prop("bio"))
        root = entity("User", prop("userId", ScalarType.NUMBER), entry=True)
        relate(root, "profile", child)
        table = resolve_tables([root]).get_or_raise("Profile")

        assert table.kind is TableKind.DEFAULT
        assert list(table.columns) == ["bio", "userId"]
        assert "arrayIndex" not in table.columns
        assert table.indices == (Index(("userId",), unique=True),)

    def test_one_to_one_child_keyed_by_parent(self):
        """Test that a child whose primary key is the parent key needs no extra index."""
        child = entity("Settings", prop("userId", ScalarType.NUMBER), prop("theme"))
        root = entity("User", prop("userId", ScalarType.NUMBER), entry=True)
        relate(root, "settings", child)
        table = resolve_tables([root]).get_or_raise("Settings")

        assert table.primary_key == "userId"
        assert table.foreign_keys == (ForeignKey("userId", "User", "userId"),)
        assert table.indices == ()

    def test_one_to_one_child_under_two_properties(self):
        """Test that a child reached through two properties of one parent is not unique per parent."""
        child = entity("Address", prop("street"))
        root = entity("Order", prop("orderId", ScalarType.NUMBER), entry=True)
        relate(root, "billing", child)
        relate(root, "shipping", child)
        table = resolve_tables([root]).get_or_raise("Address")

        assert table.foreign_keys == (ForeignKey("orderId", "Order", "orderId"),)
        assert table.indices == ()

    def test_foreign_key_reuses_property(self):
        """Test that a child property named like the parent key becomes the foreign key."""
        child = entity("Comment", prop("commentId", ScalarType.NUMBER), prop("postId", ScalarType.NUMBER))
        root = entity("Post", prop("postId", ScalarType.NUMBER), entry=True)
        relate(root, "comments", child, many=True)
        table = resolve_tables([root]).get_or_raise("Comment")

        assert table.columns["postId"].kind is ColumnKind.FROM_PROPERTY
        assert table.foreign_keys == (ForeignKey("postId", "Post", "postId"),)

    def test_foreign_key_type_follows_parent_key(self):
        """Test that the foreign key column has the parent key's type."""
        child = entity("Note", prop("text"))
        root = entity("Doc", prop("slug", tags=["primary_key"]), entry=True)
        relate(root, "notes", child, many=True)
        table = resolve_tables([root]).get_or_raise("Note")
        assert table.columns["slug"].data_type is DataType.TEXT

    def test_basic_array_table(self, phase_model):
        """Test the synthetic table of a primitive array."""
        graph = resolve_tables([phase_model])
        phase = graph.get_or_raise("Phase")
        values = graph.get_or_raise("PhaseValues")

        assert phase.array_table_names == ("PhaseValues",)
        assert graph.array_tables_of(phase) == [values]
        assert values.kind is TableKind.BASIC_ARRAY
        assert list(values.columns) == ["arrayIndex", "value", "phaseId"]
        assert values.columns["value"].data_type is DataType.TEXT
        assert values.primary_key is None
        assert values.foreign_keys == (ForeignKey("phaseId", "Phase", "phaseId"),)
        assert values.indices == (Index(("phaseId", "arrayIndex"), unique=True),)
        assert values.source_property.name == "values"
        assert graph.children_of(values) == []

    def test_table_order(self, phase_model):
        """Test that tables come out in pre-order with array tables after their owner."""
        graph = resolve_tables([phase_model])
        assert graph.list_tables() == ["Phase", "PhaseValues", "Article"]
        assert [t.name for t in graph.entry_tables()] == ["Phase"]

    def test_roots_are_entries(self):
        """Test that a root without the entry tag is still an entry table."""
        root = entity("Loose", prop("looseId", ScalarType.NUMBER))
        assert resolve_tables([root]).get_or_raise("Loose").is_entry

    def test_relation_columns_skipped(self, phase_model):
        """Test that relation and array properties never become columns."""
        phase = resolve_tables([phase_model]).get_or_raise("Phase")
        assert list(phase.columns) == ["name", "phaseId", "optionalFieldsWork"]


class TestRevisits:
    """Tests for entities reached through several paths."""

    def test_entry_and_child_share_one_table(self):
        """Test that an entry used as a child gets nullable parent columns."""
        author = entity("Author", prop("authorId", ScalarType.NUMBER), prop("name"), entry=True)
        book = entity("Book", prop("bookId", ScalarType.NUMBER), prop("title"), entry=True)
        relate(book, "authors", author, many=True)

        graph = resolve_tables([author, book])
        table = graph.get_or_raise("Author")

        assert graph.list_tables() == ["Author", "Book"]
        assert table.is_entry
        assert table.kind is TableKind.ADVANCED_ARRAY
        assert not table.columns["bookId"].not_null
        assert not table.columns["arrayIndex"].not_null
        assert Index(("bookId", "arrayIndex"), unique=True) in table.indices

    def test_child_reached_first_then_entry(self):
        """Test that nullability does not depend on visiting order."""
        author = entity("Author", prop("authorId", ScalarType.NUMBER), entry=True)
        book = entity("Book", prop("bookId", ScalarType.NUMBER), entry=True)
        relate(book, "authors", author, many=True)

        first = resolve_tables([author, book]).get_or_raise("Author")
        second = resolve_tables([book, author]).get_or_raise("Author")

        for table in (first, second):
            assert not table.columns["bookId"].not_null
            assert not table.columns["arrayIndex"].not_null

    def test_two_parents(self):
        """Test that a child of two parents references both."""
        tag = entity("Tag", prop("label"))
        post = entity("Post", prop("postId", ScalarType.NUMBER), entry=True)
        page = entity("Page", prop("pageId", ScalarType.NUMBER), entry=True)
        relate(post, "tags", tag, many=True)
        relate(page, "tag", tag)

        graph = resolve_tables([post, page])
        table = graph.get_or_raise("Tag")

        assert graph.list_tables().count("Tag") == 1
        assert table.foreign_keys == (
            ForeignKey("postId", "Post", "postId"),
            ForeignKey("pageId", "Page", "pageId"),
        )
        assert not table.columns["postId"].not_null
        assert not table.columns["pageId"].not_null
        assert not table.columns["arrayIndex"].not_null
        assert table.parent_link("Page").property_name == "tag"
        with pytest.raises(SchemaResolutionError, match="not a child"):
            table.parent_link("Other")

    def test_same_parent_two_properties(self):
        """Test one child table reached from two properties of the same parent."""
        article = entity("Article", prop("articleId", ScalarType.NUMBER))
        phase = entity("Phase", prop("phaseId", ScalarType.NUMBER), entry=True)
        relate(phase, "lead", article)
        relate(phase, "articles", article, many=True)

        table = resolve_tables([phase]).get_or_raise("Article")

        assert table.foreign_keys == (ForeignKey("phaseId", "Phase", "phaseId"),)
        assert not table.columns["arrayIndex"].not_null
        assert len(table.parent_links) == 2

    def test_mutual_references(self):
        """Test that cyclic entity graphs resolve."""
        a = entity("A", prop("aId", ScalarType.NUMBER), entry=True)
        b = entity("B", prop("bId", ScalarType.NUMBER))
        relate(a, "b", b)
        relate(b, "a", a)

        graph = resolve_tables([a])

        assert graph.list_tables() == ["A", "B"]
        assert graph.get_or_raise("B").foreign_keys == (ForeignKey("aId", "A", "aId"),)
        assert graph.get_or_raise("A").foreign_keys == (ForeignKey("bId", "B", "bId"),)


class TestResolutionErrors:
    """Tests for structural errors."""

    def test_composite_with_relations(self):
        """Test that unions whose members have relations are rejected."""
        child = entity("Item", prop("x"))
        member = entity("A", prop("aId", ScalarType.NUMBER))
        relate(member, "items", child, many=True)
        other = entity("B", prop("b"))
        composite = CompositeEntityDefinition.from_members("AorB", [member, other])
        root = entity("Holder", prop("holderId", ScalarType.NUMBER), entry=True)
        relate(root, "thing", composite)

        with pytest.raises(SchemaResolutionError, match="Composite entity 'AorB'"):
            resolve_tables([root])

    def test_composite_with_arrays_and_no_key(self):
        """Test that an array owner without a primary key is rejected."""
        member = entity("A", prop("labels", array=True))
        composite = CompositeEntityDefinition.from_members("OnlyA", [member])
        root = entity("Holder", prop("holderId", ScalarType.NUMBER), entry=True)
        relate(root, "thing", composite)

        with pytest.raises(SchemaResolutionError, match="no primary key"):
            resolve_tables([root])

    def test_composite_child_without_key(self):
        """Test that a union of leaf entities maps to a keyless child table."""
        composite = CompositeEntityDefinition.from_members(
            "CompositeType", [entity("A", prop("a")), entity("B", prop("b"))]
        )
        root = entity("Article", prop("articleId", ScalarType.NUMBER), entry=True)
        relate(root, "compositeType", composite)

        table = resolve_tables([root]).get_or_raise("CompositeType")

        assert table.primary_key is None
        assert list(table.columns) == ["a", "b", "articleId"]
        assert not table.columns["a"].not_null

    def test_reserved_array_index_name(self):
        """Test that an arrayIndex property clashes with the synthetic column."""
        child = entity("Item", prop("arrayIndex", ScalarType.NUMBER))
        root = entity("List", prop("listId", ScalarType.NUMBER))
        relate(root, "items", child, many=True)

        with pytest.raises(SchemaResolutionError, match="reserved"):
            resolve_tables([root])

    def test_foreign_key_to_two_parent_tables(self):
        """Test that one column cannot reference two different parents."""
        child = entity("Item", prop("x"))
        first = entity("First", prop("ownerId", ScalarType.NUMBER), entry=True)
        second = entity("Second", prop("ownerId", ScalarType.NUMBER), entry=True)
        relate(first, "items", child, many=True)
        relate(second, "items", child, many=True)

        with pytest.raises(SchemaResolutionError, match="would reference both"):
            resolve_tables([first, second])

    def test_array_table_name_collision(self):
        """Test that a basic array table may not shadow an entity."""
        clash = entity("PhaseValues", prop("x"))
        phase = entity("Phase", prop("phaseId", ScalarType.NUMBER), prop("values", array=True))
        relate(phase, "other", clash)

        with pytest.raises(SchemaResolutionError, match="clashes with entity"):
            resolve_tables([phase])

    def test_self_reference_through_primary_key(self):
        """Test that a child list of the same entity is rejected."""
        node = entity("Node", prop("nodeId", ScalarType.NUMBER))
        relate(node, "children", node, many=True)

        with pytest.raises(SchemaResolutionError, match="clashes with the primary key"):
            resolve_tables([node])

    def test_empty_roots(self):
        """Test that no roots resolve to an empty graph."""
        assert len(resolve_tables([])) == 0
