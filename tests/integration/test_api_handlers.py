from dataclasses import replace
from pathlib import Path

import pytest

from kbob.api.handlers import KbobApi
from kbob.common.config_loader import load_service_config
from kbob.common.errors import IngestionInProgress
from kbob.service import build_service

REPO_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


def _row(uuid: str, name: str, group: str = "Beton", **overrides) -> dict:
    row = {
        "id": "01.001",
        "uuid": uuid,
        "group": group,
        "name": name,
        "nameFr": f"{name} fr",
        "disposal": "",
        "density": 2000,
        "unit": "kg",
        "ubpTotal": 3,
        "ubpProduction": 2,
        "ubpDisposal": 1,
        "ghgTotal": 0.3,
        "ghgProduction": 0.2,
        "ghgDisposal": 0.1,
    }
    row.update(overrides)
    return row


ROWS = [
    _row("U-1", "Hochbaubeton", ghgTotal=0.1),
    _row("U-2", "Magerbeton", ghgTotal=0.3),
    _row("U-3", "Backstein", group="Mauersteine", nameFr="Brique", ghgTotal=0.5),
]


class FakeFetcher:
    def __init__(self, batches: list):
        self.batches = list(batches)
        self.dataset_url = "https://kbob.example/data.xlsx"
        self.closed = False

    def fetch_raw_dataset(self):
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    def fetch_link(self, url: str) -> bool:
        if "boom" in url:
            raise RuntimeError("link check exploded")
        return url.endswith(".xlsx")

    def close(self) -> None:
        self.closed = True


def _service(batches: list):
    return build_service(load_service_config(REPO_CONFIG_DIR), fetcher=FakeFetcher(batches))


@pytest.fixture()
def loaded():
    service = _service([ROWS, ROWS])
    assert service.api.trigger_ingestion().status == 200
    yield service
    service.close()


@pytest.mark.integration
def test_last_ingestion_is_null_before_first_run():
    service = _service([])

    response = service.api.last_ingestion()

    assert response.status == 200
    assert response.body == {"lastIngestionTime": None}


@pytest.mark.integration
def test_last_ingestion_reports_published_timestamp(loaded):
    response = loaded.api.last_ingestion()

    assert response.body["lastIngestionTime"].startswith(str(loaded.store.last_ingested_at().year))


@pytest.mark.integration
def test_materials_by_group_returns_matching_records(loaded):
    response = loaded.api.materials_by_group("Beton")

    assert response.status == 200
    assert response.body["success"] is True
    assert response.body["count"] == 2
    assert [m["uuid"] for m in response.body["materials"]] == ["U-1", "U-2"]
    assert response.body["materials"][0]["nameFr"] == "Hochbaubeton fr"


@pytest.mark.integration
def test_unknown_group_is_a_successful_empty_result(loaded):
    response = loaded.api.materials_by_group("Nope")

    assert response.status == 200
    assert response.body == {"success": True, "materials": [], "count": 0}


@pytest.mark.integration
def test_all_materials_reports_paging_metadata(loaded):
    response = loaded.api.all_materials("2", "2")

    assert response.status == 200
    assert response.body["count"] == 1
    assert response.body["totalItems"] == 3
    assert response.body["totalPages"] == 2
    assert response.body["currentPage"] == 2
    assert response.body["pageSize"] == 2


@pytest.mark.integration
def test_all_materials_uses_configured_default_page_size(loaded):
    response = loaded.api.all_materials()

    assert response.status == 200
    assert response.body["pageSize"] == 10
    assert response.body["count"] == 3


@pytest.mark.integration
@pytest.mark.parametrize("page,page_size", [("0", None), ("abc", None), (None, "-5"), (True, None)])
def test_all_materials_rejects_invalid_paging(loaded, page, page_size):
    response = loaded.api.all_materials(page, page_size)

    assert response.status == 400
    assert response.body["success"] is False


@pytest.mark.integration
def test_material_by_uuid_found_and_missing(loaded):
    found = loaded.api.material_by_uuid("u-3")
    missing = loaded.api.material_by_uuid("U-404")

    assert found.status == 200
    assert found.body["material"]["name"] == "Backstein"
    assert missing.status == 404
    assert missing.body == {"success": False, "error": "Material not found", "requestedUUID": "U-404"}


@pytest.mark.integration
def test_search_by_language(loaded):
    german = loaded.api.search("beton")
    french = loaded.api.search("brique", "fr")
    blank = loaded.api.search("  ")

    assert german.status == 200
    assert german.body["count"] == 2
    assert german.body["language"] == "de"
    assert [m["uuid"] for m in french.body["materials"]] == ["U-3"]
    assert blank.status == 400


@pytest.mark.integration
def test_metric_stats_responses(loaded):
    ok = loaded.api.metric_stats("ghgTotal")
    missing = loaded.api.metric_stats("")
    unknown = loaded.api.metric_stats("notAMetric")

    assert ok.status == 200
    assert ok.body["unit"] == "kg CO2 eq"
    assert ok.body["stats"]["min"] == 0.1
    assert ok.body["stats"]["max"] == 0.5
    assert ok.body["stats"]["median"] == 0.3
    assert ok.body["stats"]["nonNullCount"] == 3
    assert missing.status == 400
    assert unknown.status == 404


@pytest.mark.integration
@pytest.mark.parametrize(
    "body,status,success",
    [
        (None, 400, False),
        ({}, 400, False),
        ({"link": "not a link"}, 400, False),
        ({"link": "https://kbob.example/file.xlsx"}, 200, True),
        ({"link": "https://kbob.example/missing"}, 200, False),
        ({"link": "https://kbob.example/boom"}, 500, False),
    ],
)
def test_test_link_responses(loaded, body, status, success):
    response = loaded.api.test_link(body)

    assert response.status == status
    assert response.body["success"] is success


@pytest.mark.integration
def test_trigger_ingestion_failure_keeps_data_and_reports_reason():
    service = _service([ROWS, []])
    service.api.trigger_ingestion()

    response = service.api.trigger_ingestion()

    assert response.status == 500
    assert response.body["success"] is False
    assert response.body["failureReason"] == "EMPTY_INGESTION_RESULT"
    assert service.api.materials_by_group("Beton").body["count"] == 2


@pytest.mark.integration
def test_trigger_ingestion_success_body(loaded):
    response = loaded.api.trigger_ingestion()

    assert response.status == 200
    assert response.body["success"] is True
    assert response.body["recordCount"] == 3
    assert response.body["failureReason"] is None


class BusyCoordinator:
    def run_ingestion(self):
        raise IngestionInProgress("busy")


@pytest.mark.integration
def test_trigger_ingestion_conflict_when_run_in_progress(loaded):
    api = KbobApi(loaded.store, loaded.queries, loaded.validator, BusyCoordinator())

    response = api.trigger_ingestion()

    assert response.status == 409
    assert response.body["success"] is False


@pytest.mark.integration
def test_close_releases_fetcher(loaded):
    loaded.close()

    assert loaded.fetcher.closed is True


@pytest.mark.integration
def test_names_and_compare_responses(loaded):
    names = loaded.api.names("fr")
    compared = loaded.api.compare("u-1, U-3", "ghgTotal,bogus", "de")
    no_uuids = loaded.api.compare("")

    assert names.status == 200
    assert names.body["count"] == 3
    assert names.body["names"][0] == {"uuid": "U-3", "name": "Brique"}
    assert compared.status == 200
    assert compared.body["count"] == 2
    assert compared.body["metrics"] == ["ghgTotal"]
    assert compared.body["comparison"][1]["metrics"]["ghgTotal"]["value"] == 0.5
    assert no_uuids.status == 400
    assert no_uuids.body["success"] is False


@pytest.mark.integration
def test_version_endpoints_follow_the_configured_source(loaded):
    check = loaded.api.check_new_version()
    versions = loaded.api.versions()

    assert check.status == 200
    assert check.body["success"] is True
    assert check.body["hasNewVersion"] is False
    assert versions.status == 200
    assert versions.body["versions"] == []
    assert versions.body["currentVersion"] is None


@pytest.mark.integration
@pytest.mark.parametrize(
    "content",
    ["{truncated", "[]", '{"format": 99}', '{"format": 1, "ingested_at": "2026-01-01T00:00:00+00:00"}'],
)
def test_unusable_snapshot_file_starts_empty(tmp_path: Path, content: str):
    path = tmp_path / "snapshot.json"
    path.write_text(content, encoding="utf-8")
    base = load_service_config(REPO_CONFIG_DIR)
    config = replace(base, ingestion=replace(base.ingestion, snapshot_path=path))

    service = build_service(config, fetcher=FakeFetcher([ROWS]))

    assert service.store.current().version == 0
    assert service.api.last_ingestion().body == {"lastIngestionTime": None}
    assert service.api.trigger_ingestion().status == 200
    assert service.store.current().version == 1
