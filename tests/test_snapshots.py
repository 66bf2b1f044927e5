import json

from conftest import CUBA_PRODUCTS
from stockbot.snapshots import ResultSnapshotWriter


def test_write_creates_parent_and_serializes_products(tmp_path):
    writer = ResultSnapshotWriter(tmp_path / "data" / "produtos.json")
    assert writer.write("abc@c.us", "cuba", CUBA_PRODUCTS[2:4])
    payload = json.loads(writer.path.read_text(encoding="utf-8"))
    assert payload["term"] == "cuba"
    assert payload["products"] == [
        {"name": "Cuba Dupla Granito", "id": "103", "price": "10.00", "stock": "3"},
        {"name": "Cuba Tanque Branca", "id": "104", "price": "10.00", "stock": None},
    ]


def test_write_failure_is_reported(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    writer = ResultSnapshotWriter(blocker / "produtos.json")
    assert writer.write("abc@c.us", "cuba", CUBA_PRODUCTS) is False
