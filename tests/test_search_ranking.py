import asyncio

from alumni_api.services.search import (
    MISSING_SERIAL_NO,
    UNRANKED_PROGRAM,
    build_search_query,
    program_rank,
    project_public_fields,
    rank_key,
    serial_number,
)
from alumni_api.services.store import InMemoryRepository


def _record(roll_number: str, program: str | None, serial: object = "1", **extra: object) -> dict:
    record = {"rollNumber": roll_number, "name": f"Alum {roll_number}", "country": "India", **extra}
    if program is not None:
        record["programName"] = program
    if serial is not None:
        record["serialNo"] = serial
    return record


def test_program_rank_uses_priority_list() -> None:
    assert program_rank("PGDMIT") == 1
    assert program_rank(" mtech ") == 9
    assert program_rank("DSC") == 11
    assert program_rank("UNKNOWN") == UNRANKED_PROGRAM
    assert program_rank(None) == UNRANKED_PROGRAM


def test_serial_number_pushes_unparseable_values_last() -> None:
    assert serial_number("42") == 42
    assert serial_number(7) == 7
    assert serial_number(" 08 ") == 8
    assert serial_number("12a") == MISSING_SERIAL_NO
    assert serial_number(None) == MISSING_SERIAL_NO


def test_program_rank_orders_results() -> None:
    records = [_record("R1", "MTECH"), _record("R2", "BCS"), _record("R3", "UNKNOWN")]

    ordered = sorted(records, key=rank_key)

    assert [record["programName"] for record in ordered] == ["BCS", "MTECH", "UNKNOWN"]


def test_serial_tie_breaks_numeric_then_string() -> None:
    records = [
        _record("R1", "IMT", "abc"),
        _record("R2", "IMT", "10"),
        _record("R3", "IMT", None),
        _record("R4", "IMT", "2"),
    ]

    ordered = sorted(records, key=rank_key)

    assert [record["rollNumber"] for record in ordered] == ["R4", "R2", "R3", "R1"]


def test_projection_drops_contact_fields() -> None:
    projected = project_public_fields(
        _record("R1", "IMT", email="a@example.com", phone="123", linkedIn="x", lastPosition="CTO")
    )

    assert projected["lastPosition"] == "CTO"
    assert "email" not in projected
    assert "phone" not in projected
    assert "linkedIn" not in projected


def test_pages_cover_sorted_results_without_overlap() -> None:
    programs = ["MBA", "BCS", None, "PHD", "IPG", "BCS", "IMT"]
    serials = ["3", "1", "2", None, "x", "1", "5"]
    repository = InMemoryRepository(
        _record(f"R{index}", program, serial) for index, (program, serial) in enumerate(zip(programs, serials))
    )

    full, total = asyncio.run(repository.search_alumni(build_search_query({"country": "india"}, limit=50)))
    assert total == len(programs)

    collected: list[dict] = []
    limit = 3
    page_count = -(-total // limit)
    for page in range(1, page_count + 1):
        rows, page_total = asyncio.run(
            repository.search_alumni(build_search_query({"country": "India"}, page=page, limit=limit))
        )
        assert page_total == total
        collected.extend(rows)

    assert [row["rollNumber"] for row in collected] == [row["rollNumber"] for row in full]
    assert len({row["rollNumber"] for row in collected}) == total
