from pincode_map.cli import parse_args


def test_parse_args_defaults():
    args = parse_args(["resolve"])
    assert args.command == "resolve"
    assert args.overlay_config_dir is None
    assert args.limit == "all"
    assert args.search == ""
    assert args.select is None


def test_parse_args_accepts_filters():
    args = parse_args(["view", "--search", "110", "--min-sales", "100", "--limit", "250", "--select", "110001"])
    assert args.search == "110"
    assert args.min_sales == "100"
    assert args.limit == "250"
    assert args.select == "110001"
