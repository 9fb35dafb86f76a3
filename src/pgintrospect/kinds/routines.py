"""
Function and procedure extraction.

A routine name can be overloaded, so both extractors work per signature:
functions return one FunctionDetails per overload.
"""

import logging
from typing import Any, Dict, List

from ..adapter import QueryExecutor
from ..models import (
    PARALLEL_SAFETY_CODES,
    PARAMETER_MODE_CODES,
    VOLATILITY_CODES,
    FunctionDetails,
    FunctionParameter,
    ParallelSafety,
    ParameterMode,
    PgType,
    ProcedureDetails,
    Volatility,
)

logger = logging.getLogger(__name__)

ROUTINES_QUERY = """
SELECT
    p.oid,
    format_type(p.prorettype, NULL) AS return_type,
    l.lanname AS language,
    p.prosrc AS definition,
    p.proisstrict AS is_strict,
    p.prosecdef AS is_security_definer,
    p.proleakproof AS is_leak_proof,
    p.proretset AS returns_set,
    p.provolatile AS volatility,
    p.proparallel AS parallel_safety,
    p.procost AS estimated_cost,
    CASE WHEN p.proretset THEN p.prorows END AS estimated_rows,
    obj_description(p.oid, 'pg_proc') AS comment,
    p.proargmodes::text[] AS arg_modes,
    p.proargnames AS arg_names,
    p.pronargdefaults AS default_count,
    ARRAY(
        SELECT format_type(a.type_oid, NULL)
        FROM unnest(COALESCE(p.proallargtypes, p.proargtypes::oid[]))
            WITH ORDINALITY AS a(type_oid, ord)
        ORDER BY a.ord
    ) AS arg_types
FROM pg_proc p
JOIN pg_namespace n ON n.oid = p.pronamespace
JOIN pg_language l ON l.oid = p.prolang
WHERE n.nspname = %(schema_name)s
  AND p.proname = %(name)s
  AND p.prokind = %(prokind)s
ORDER BY p.oid
"""

# Modes that make up the call signature (and so can carry defaults)
_INPUT_MODES = (ParameterMode.IN, ParameterMode.INOUT, ParameterMode.VARIADIC)


def build_parameters(row: Dict[str, Any]) -> List[FunctionParameter]:
    """
    Build the parameter list of a routine from its pg_proc arrays.

    proargmodes and proargnames are NULL when every argument is IN and
    unnamed respectively. Defaults always belong to the trailing input
    arguments.
    """
    types = list(row.get("arg_types") or [])
    modes = [PARAMETER_MODE_CODES[code] for code in row.get("arg_modes") or ["i"] * len(types)]
    names = list(row.get("arg_names") or [])
    names += [""] * (len(types) - len(names))

    input_positions = [i for i, mode in enumerate(modes) if mode in _INPUT_MODES]
    default_count = row.get("default_count") or 0
    with_default = set(input_positions[len(input_positions) - default_count :]) if default_count else set()

    return [
        FunctionParameter(
            name=names[i] or f"${i + 1}",
            type=types[i],
            mode=modes[i],
            has_default=i in with_default,
            ordinal_position=i + 1,
        )
        for i in range(len(types))
    ]


def _fetch_routines(db: QueryExecutor, pg_type: PgType, prokind: str) -> List[Dict[str, Any]]:
    return db.query(
        ROUTINES_QUERY,
        {"schema_name": pg_type.schema_name, "name": pg_type.name, "prokind": prokind},
    )


def extract_function(db: QueryExecutor, pg_type: PgType) -> List[FunctionDetails]:
    functions = []
    for row in _fetch_routines(db, pg_type, "f"):
        parameters = build_parameters(row)
        functions.append(
            FunctionDetails(
                name=pg_type.name,
                schema_name=pg_type.schema_name,
                comment=row.get("comment"),
                parameters=parameters,
                return_type=row["return_type"],
                returns_set=bool(row["returns_set"]),
                return_columns=[p for p in parameters if p.mode is ParameterMode.TABLE],
                language=row["language"],
                definition=row.get("definition") or "",
                is_strict=bool(row["is_strict"]),
                is_security_definer=bool(row["is_security_definer"]),
                is_leak_proof=bool(row["is_leak_proof"]),
                volatility=VOLATILITY_CODES.get(row["volatility"], Volatility.VOLATILE),
                parallel_safety=PARALLEL_SAFETY_CODES.get(row["parallel_safety"], ParallelSafety.UNSAFE),
                estimated_cost=float(row["estimated_cost"]),
                estimated_rows=float(row["estimated_rows"]) if row.get("estimated_rows") is not None else None,
            )
        )

    logger.debug("Extracted %d overload(s) of %s.%s", len(functions), pg_type.schema_name, pg_type.name)
    return functions


def extract_procedure(db: QueryExecutor, pg_type: PgType) -> List[ProcedureDetails]:
    return [
        ProcedureDetails(
            name=pg_type.name,
            schema_name=pg_type.schema_name,
            comment=row.get("comment"),
            parameters=build_parameters(row),
            language=row["language"],
            definition=row.get("definition") or "",
            is_security_definer=bool(row["is_security_definer"]),
            is_leak_proof=bool(row["is_leak_proof"]),
            parallel_safety=PARALLEL_SAFETY_CODES.get(row["parallel_safety"], ParallelSafety.UNSAFE),
            estimated_cost=float(row["estimated_cost"]),
        )
        for row in _fetch_routines(db, pg_type, "p")
    ]
