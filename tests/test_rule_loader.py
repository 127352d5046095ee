from app import rule_loader


def test_rules_are_cached_until_reset():
    first = rule_loader.get_parser_rules()
    assert rule_loader.get_parser_rules() is first

    rule_loader.reset_cache()
    reloaded = rule_loader.get_parser_rules()

    assert reloaded is not first
    assert reloaded == first


def test_base_cost_rows():
    rows = rule_loader.get_base_costs()

    assert {"item_type": "procedure", "category": "surgical procedure", "base_cost": 150000} in rows
    assert {row["item_type"] for row in rows} == {"investigation", "procedure", "medication", "other_service"}


def test_validation_rules_loaded():
    rules = rule_loader.get_validation_rules()

    assert rules["claim_rules"]["excessive_cost_threshold"] == 1000000
    assert rules["batch_rules"]["outlier_multiplier"] == 3
