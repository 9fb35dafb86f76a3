"""
Type canonicalization against a live Postgres server.

The catalog query does the real work for domains, enums and composites
(chain walking, label order, dropped attributes), so these run it for real
in a throwaway container. Needs Docker and the ``test`` extra; selected with
``-m postgres`` or skipped when testcontainers is missing.
"""

import psycopg2
import pytest

from pgintrospect.adapter import DbAdapter
from pgintrospect.errors import TypeResolutionError
from pgintrospect.models import BaseType, CompositeType, DomainType, EnumType, RangeType
from pgintrospect.type_canonicalizer import TypeCanonicalizer

# Check if testcontainers is available
try:
    from testcontainers.postgres import PostgresContainer

    TESTCONTAINERS_AVAILABLE = True
except ImportError:
    PostgresContainer = None
    TESTCONTAINERS_AVAILABLE = False


pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(not TESTCONTAINERS_AVAILABLE, reason="testcontainers not installed"),
]

SETUP_STATEMENTS = [
    "CREATE DOMAIN positive_int AS integer CHECK (VALUE > 0)",
    "CREATE DOMAIN small_positive AS positive_int CHECK (VALUE < 100)",
    "CREATE DOMAIN tiny_positive AS small_positive CHECK (VALUE < 10)",
    "CREATE TYPE mood AS ENUM ('sad', 'happy')",
    # Inserted out of creation order; enumsortorder puts it between the two
    "ALTER TYPE mood ADD VALUE 'ok' BEFORE 'happy'",
    "CREATE TYPE address AS (street text, zip varchar(10), legacy integer, tags text[])",
    "ALTER TYPE address DROP ATTRIBUTE legacy",
    "CREATE TYPE parcel AS (destination address, weight numeric(6,2))",
]


@pytest.fixture(scope="module")
def postgres_url():
    container = PostgresContainer("postgres:16-alpine", driver=None)
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Could not start a Postgres container: {e}")

    try:
        url = container.get_connection_url()
        connection = psycopg2.connect(url)
        connection.autocommit = True
        with connection.cursor() as cursor:
            for statement in SETUP_STATEMENTS:
                cursor.execute(statement)
        connection.close()
        yield url
    finally:
        container.stop()


@pytest.fixture
def canonicalizer(postgres_url):
    with DbAdapter(postgres_url) as db:
        yield TypeCanonicalizer(db)


class TestBaseTypes:
    """Names, arrays and modifiers as reported by the server"""

    def test_alias_resolves_to_internal_name(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["integer"])

        assert isinstance(result, BaseType)
        assert result.canonical_name == "pg_catalog.int4"

    def test_array_shares_element_canonical_name(self, canonicalizer):
        element, array = canonicalizer.canonicalise(["integer", "integer[]"])

        assert array.dimensions == 1
        assert array.canonical_name == element.canonical_name

    def test_modifiers_are_not_sent_to_the_catalog(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["character varying(20)[]"])

        assert result.canonical_name == "pg_catalog.varchar"
        assert result.modifiers == "20"
        assert result.dimensions == 1

    def test_range_subtype(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["int4range"])

        assert isinstance(result, RangeType)
        assert result.range_subtype == "pg_catalog.int4"

    def test_unknown_type_fails_whole_batch(self, canonicalizer):
        with pytest.raises(TypeResolutionError) as exc_info:
            canonicalizer.canonicalise(["integer", "public.no_such_type"])

        assert exc_info.value.type_reference == "public.no_such_type"


class TestDomainChains:
    """A domain over domains reports the non-domain type at the bottom"""

    def test_domain_over_base_type(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["public.positive_int"])

        assert isinstance(result, DomainType)
        assert result.domain_base_type.canonical_name == "pg_catalog.int4"

    def test_two_level_chain(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["public.small_positive"])

        assert result.canonical_name == "public.small_positive"
        assert result.domain_base_type.canonical_name == "pg_catalog.int4"

    def test_three_level_chain_in_mixed_batch(self, canonicalizer):
        results = canonicalizer.canonicalise(
            ["public.tiny_positive", "text", "public.small_positive[]"]
        )

        assert [r.canonical_name for r in results] == [
            "public.tiny_positive",
            "pg_catalog.text",
            "public.small_positive",
        ]
        assert results[0].domain_base_type.canonical_name == "pg_catalog.int4"
        assert results[2].domain_base_type.canonical_name == "pg_catalog.int4"
        assert results[2].dimensions == 1


class TestEnumOrder:
    def test_values_follow_sort_order_not_creation_order(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["public.mood"])

        assert isinstance(result, EnumType)
        assert result.enum_values == ("sad", "ok", "happy")


class TestCompositeAttributes:
    """Attribute lists skip dropped attributes and keep their ordinals"""

    def test_dropped_attribute_is_excluded(self, canonicalizer):
        (result,) = canonicalizer.canonicalise(["public.address"])

        assert isinstance(result, CompositeType)
        assert [(a.name, a.ordinal) for a in result.attributes] == [
            ("street", 1),
            ("zip", 2),
            ("tags", 4),
        ]
        assert [a.type_reference for a in result.attributes] == [
            "text",
            "character varying(10)",
            "text[]",
        ]

    def test_expand_attributes_one_level(self, canonicalizer):
        (parcel,) = canonicalizer.canonicalise(["public.parcel"])
        (attribute_types,) = canonicalizer.expand_attributes([parcel])

        destination, weight = attribute_types
        assert isinstance(destination, CompositeType)
        assert destination.canonical_name == "public.address"
        assert weight.canonical_name == "pg_catalog.numeric"
        assert weight.modifiers == "6,2"

        (address_types,) = canonicalizer.expand_attributes([destination])
        assert [t.canonical_name for t in address_types] == [
            "pg_catalog.text",
            "pg_catalog.varchar",
            "pg_catalog.text",
        ]
        assert address_types[2].dimensions == 1
