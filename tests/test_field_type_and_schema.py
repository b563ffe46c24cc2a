from typing import Dict, List, Optional

import pytest
from pydantic import BaseModel, ValidationError
from rdflib import URIRef, XSD

from pydrdf import (
    FieldTypeCategory,
    JsonStringDatatype,
    NpArrayNdDatatype,
    RdfRecord,
    SchemaError,
    SchemaRegistry,
    identify_field_type_category,
    rdf_property,
    schema_of,
    validate_record_class,
)
from tests.fixtures.people_schema import EX, Employee, Gadget, Person

GADGET = "http://example.org/gadget#"


# ──────────────────────────────────────────────────────────────────────
# Field categories
# ──────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "record_class, field_name, expected",
    [
        (Person, "name", FieldTypeCategory.OPTIONAL_PY_LITERAL),
        (Person, "tags", FieldTypeCategory.LIST_PY_LITERAL),
        (Person, "friend", FieldTypeCategory.OPTIONAL_RECORD),
        (Person, "knows", FieldTypeCategory.LIST_RECORD),
        (Gadget, "weight", FieldTypeCategory.OPTIONAL_PY_LITERAL),
        (Gadget, "released", FieldTypeCategory.OPTIONAL_DATETIME),
        (Gadget, "colour", FieldTypeCategory.OPTIONAL_STR_ENUM),
        (Gadget, "level", FieldTypeCategory.OPTIONAL_INT_ENUM),
        (Gadget, "sizes", FieldTypeCategory.LIST_PY_LITERAL),
        (Gadget, "specs", FieldTypeCategory.PY_JSON),
        (Gadget, "shape", FieldTypeCategory.OPTIONAL_NPND_ARRAY),
    ],
)
def test_identify_field_type_category(record_class, field_name, expected):
    field_info = record_class.model_fields[field_name]
    assert identify_field_type_category(field_info, field_name) == expected


def test_reserved_field_name_is_rejected():
    class WithId(BaseModel):
        id: Optional[str] = None

    with pytest.raises(TypeError, match="reserved"):
        validate_record_class(WithId)


def test_field_without_default_is_rejected():
    class Required(BaseModel):
        name: Optional[str]

    with pytest.raises(TypeError, match="default"):
        validate_record_class(Required)


def test_optional_collection_is_rejected():
    class OptionalList(BaseModel):
        tags: Optional[List[str]] = None

    with pytest.raises(TypeError):
        validate_record_class(OptionalList)


def test_dict_with_non_str_keys_is_rejected():
    class IntKeys(BaseModel):
        table: Dict[int, str] = {}

    with pytest.raises(AssertionError):
        validate_record_class(IntKeys)


# ──────────────────────────────────────────────────────────────────────
# Schema tables
# ──────────────────────────────────────────────────────────────────────


def test_person_schema():
    schema = schema_of(Person)
    assert schema.record_class is Person
    assert schema.rdf_type == EX.Person
    assert schema.types == (EX.Person,)
    assert schema.base_uri == "http://example.org/people"
    assert list(schema.attributes) == ["name", "tags", "age", "friend", "knows"]

    name = schema.attribute("name")
    assert name.predicate == EX.name
    assert name.datatype == XSD.string
    assert not name.collection
    assert not name.is_reference

    tags = schema.attribute("tags")
    assert tags.predicate == EX.tag
    assert tags.collection

    assert schema.attribute("age").datatype == XSD.integer

    friend = schema.attribute("friend")
    assert friend.is_reference
    assert friend.record_class is Person
    assert friend.datatype == EX.Person
    assert not friend.collection

    knows = schema.attribute("knows")
    assert knows.is_reference
    assert knows.collection


def test_subclass_schema_inherits_types_and_attributes():
    schema = schema_of(Employee)
    assert schema.rdf_type == EX.Employee
    assert schema.types == (EX.Employee, EX.Person)
    assert "name" in schema.attributes
    assert schema.attribute("employer").predicate == EX.employer
    # __base_uri__ is inherited like any class attribute
    assert schema.base_uri == "http://example.org/people"


def test_vocab_predicates_and_datatypes():
    schema = schema_of(Gadget)
    # explicit predicate and datatype win
    assert schema.attribute("serial").predicate == EX.serial
    assert schema.attribute("serial").datatype == XSD.integer

    assert schema.attribute("weight").predicate == URIRef(GADGET + "weight")
    assert schema.attribute("weight").datatype == XSD.decimal
    assert schema.attribute("released").datatype == XSD.date
    assert schema.attribute("colour").datatype == XSD.string
    assert schema.attribute("level").datatype == XSD.integer
    assert schema.attribute("sizes").datatype == XSD.integer
    assert schema.attribute("sizes").collection
    assert schema.attribute("specs").datatype == JsonStringDatatype.iri
    assert not schema.attribute("specs").collection
    assert schema.attribute("shape").datatype == NpArrayNdDatatype.iri


def test_base_uri_defaults_to_type_without_fragment():
    schema = schema_of(Gadget)
    assert schema.base_uri == "http://example.org/schema"
    assert schema.subject_for("g1") == URIRef("http://example.org/schema#g1")


def test_schema_is_cached():
    first = schema_of(Person)
    assert schema_of(Person) is first
    SchemaRegistry.clear_cache()
    rebuilt = schema_of(Person)
    assert rebuilt is not first
    assert rebuilt == first


def test_unknown_attribute_raises_schema_error():
    with pytest.raises(SchemaError):
        schema_of(Person).attribute("nickname")


def test_missing_predicate_without_vocab():
    class Unmapped(RdfRecord):
        __rdf_type__ = EX.Unmapped

        label: Optional[str] = None

    with pytest.raises(SchemaError, match="label"):
        schema_of(Unmapped)


def test_missing_rdf_type():
    class Untyped(RdfRecord):
        label: Optional[str] = rdf_property(EX.label)

    with pytest.raises(SchemaError):
        schema_of(Untyped)


def test_record_class_for():
    assert SchemaRegistry.record_class_for(EX.Person) is Person
    assert SchemaRegistry.record_class_for(EX.Employee) is Employee
    assert SchemaRegistry.record_class_for(EX.Nothing) is None


# ──────────────────────────────────────────────────────────────────────
# Record state
# ──────────────────────────────────────────────────────────────────────


def test_new_record_identity():
    person = Person()
    assert person.subject is None
    assert person.id is None
    assert not person.destroyed
    assert person.changed == frozenset()


def test_for_id_builds_clean_stub():
    person = Person.for_id("ada")
    assert person.subject == URIRef("http://example.org/people#ada")
    assert person.id == "ada"
    assert person.changed == frozenset()
    assert person.name is None
    assert person == Person.for_id("ada")
    assert person != Person.for_id("bob")


def test_unsaved_records_compare_by_identity():
    a = Person(name="Ada")
    b = Person(name="Ada")
    assert a == a
    assert a != b


def test_hash_follows_subject(engine):
    ada = Person(name="Ada")
    members = {ada}
    assert engine.save(ada)

    # the first save moves the hash from identity to subject
    assert hash(ada) == hash(ada.subject)
    assert ada not in members
    assert ada in {ada}
    assert ada in {Person.for_subject(ada.subject)}


def test_dirty_tracking():
    person = Person(name="Ada")
    assert person.changed == {"name"}

    person.age = 36
    assert person.changed == {"name", "age"}

    # in-place mutation is invisible until flagged
    person.tags.append("math")
    assert "tags" not in person.changed
    person.mark_changed("tags")
    assert "tags" in person.changed

    with pytest.raises(SchemaError):
        person.mark_changed("nickname")


def test_assignment_is_validated():
    person = Person()
    with pytest.raises(ValidationError):
        person.age = "not a number"
