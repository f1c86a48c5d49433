import re

from database_schema import FULL_SCHEMA_SETUP, RPC_SIGNATURES

TRIGGER_FUNCTIONS = {"update_updated_at_column"}


def created_functions() -> set:
    names = re.findall(r"CREATE OR REPLACE FUNCTION (\w+)\(", FULL_SCHEMA_SETUP)
    return set(names) - TRIGGER_FUNCTIONS


def test_every_rpc_is_restricted_to_the_service_role():
    functions = created_functions()
    assert functions == {signature.split("(")[0] for signature in RPC_SIGNATURES}

    for name in functions:
        assert re.search(
            rf"REVOKE EXECUTE ON FUNCTION {name}\([^)]*\) FROM PUBLIC, anon, authenticated;",
            FULL_SCHEMA_SETUP,
        ), name
        assert re.search(
            rf"GRANT EXECUTE ON FUNCTION {name}\([^)]*\) TO service_role;",
            FULL_SCHEMA_SETUP,
        ), name


def test_signatures_match_function_arguments():
    for signature in RPC_SIGNATURES:
        name, args = signature[:-1].split("(")
        declared = re.search(
            rf"CREATE OR REPLACE FUNCTION {name}\(([^)]*)\)", FULL_SCHEMA_SETUP
        ).group(1)
        types = [part.split()[-1] for part in declared.split(",")]
        assert types == [arg.strip() for arg in args.split(",")], name


def test_policies_are_dropped_before_being_created():
    for policy in re.findall(r"CREATE POLICY (\w+) ON (\w+)", FULL_SCHEMA_SETUP):
        assert f"DROP POLICY IF EXISTS {policy[0]} ON {policy[1]};" in FULL_SCHEMA_SETUP
