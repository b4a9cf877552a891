import json
import logging

from config.logging import JsonFormatter, SamplingFilter


def _record(msg="inventory.adjusted", level=logging.INFO, **extra):
    record = logging.LogRecord("storefront.inventory", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extras():
    line = JsonFormatter().format(_record(event="inventory.adjusted", variant_id=3, obj=object()))
    payload = json.loads(line)
    assert payload["level"] == "INFO"
    assert payload["name"] == "storefront.inventory"
    assert payload["message"] == "inventory.adjusted"
    assert payload["event"] == "inventory.adjusted"
    assert payload["variant_id"] == 3
    assert payload["time"].endswith("Z")
    # Non-serializable extras are stringified
    assert isinstance(payload["obj"], str)


def test_json_formatter_merges_dict_messages():
    payload = json.loads(JsonFormatter().format(_record(msg=json.dumps({"event": "x", "count": 2}))))
    assert payload["event"] == "x"
    assert payload["count"] == 2


def test_sampling_filter_keeps_audit_events_and_other_levels():
    sampler = SamplingFilter(rate=0.0, levels=["INFO"], allow_events=["inventory.adjusted"])
    assert sampler.filter(_record(msg="inventory.adjusted", event="inventory.adjusted")) is True
    assert sampler.filter(_record(msg="inventory.adjustment_conflict", event="inventory.adjustment_conflict")) is False
    assert sampler.filter(_record(msg="inventory.reconcile_failed", level=logging.WARNING)) is True


def test_sampling_filter_bad_rate_defaults_to_keep_all():
    sampler = SamplingFilter(rate="not-a-number")
    assert sampler.filter(_record(msg="anything")) is True
