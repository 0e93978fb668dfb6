from kbob.api.handlers import ApiResponse
from kbob.cli import exit_code_for, parse_args


def test_parse_args_defaults():
    args = parse_args(["materials"])
    assert args.command == "materials"
    assert args.value is None
    assert args.language == "de"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.snapshot_path is None


def test_parse_args_accepts_value_and_paging():
    args = parse_args(["materials", "--page", "2", "--page-size", "25"])
    assert args.page == "2"
    assert args.page_size == "25"


def test_parse_args_search_language():
    args = parse_args(["search", "Beton", "--language", "fr"])
    assert args.value == "Beton"
    assert args.language == "fr"


def test_exit_codes_follow_response_status():
    assert exit_code_for(ApiResponse(200)) == 0
    assert exit_code_for(ApiResponse(404)) == 10
    assert exit_code_for(ApiResponse(409)) == 10
    assert exit_code_for(ApiResponse(500)) == 20


def test_parse_args_compare_metrics():
    args = parse_args(["compare", "U-1,U-2", "--metrics", "ghgTotal,ubpTotal"])
    assert args.command == "compare"
    assert args.value == "U-1,U-2"
    assert args.metrics == "ghgTotal,ubpTotal"
