import datetime as dt
import uuid

import pytest
import yaml

from pmdump import models_v2, models_v3
from pmdump.types import AppVersion
from pmdump.yamlio import create_yaml, read_yaml


def _data():
    created = dt.datetime(2023, 3, 4, 5, 6, 7, tzinfo=dt.timezone.utc)
    home = models_v3.Node(title="home", id=uuid.uuid4(), node_type=models_v3.NodeType.FOLDER)
    home.insert(models_v3.FlatNode(id=uuid.uuid4(), title="2024", model="document",
                                   full_path="/2024", file_name="2024.pdf"))
    return models_v3.Data(
        users=[models_v3.User(id=uuid.uuid4(), username="alice",
                              email="alice@example.com", home=home)],
        tags=[models_v3.Tag(id=uuid.uuid4(), name="urgent", fg_color="#fff",
                            bg_color="#f00", pinned=True)],
        custom_fields=[models_v3.CustomField(id=uuid.uuid4(), name="total",
                                             type="monetary", created_at=created)],
        custom_field_values=[models_v3.CustomFieldValues(
            id=uuid.uuid4(), value_monetary=2.5, value_boolean=False, created_at=created)],
    )


@pytest.mark.parametrize("version", [AppVersion.V3_3, AppVersion.V3_2, "3.3"])
def test_v3_round_trip(tmp_path, version):
    target = tmp_path / "export.yaml"
    data = _data()
    create_yaml(str(target), data, version)
    assert read_yaml(str(target)) == data


def test_datetimes_preserved(tmp_path):
    target = tmp_path / "export.yaml"
    data = _data()
    create_yaml(str(target), data, AppVersion.V3_3)
    loaded = read_yaml(str(target))
    assert loaded.custom_fields[0].created_at == data.custom_fields[0].created_at


def test_v2_export_written(tmp_path):
    target = tmp_path / "export.yaml"
    data = models_v2.Data(users=[models_v2.User(legacy_id=7, username="bob",
                                                email="bob@example.com",
                                                home=models_v2.Node(title="home"))])
    create_yaml(str(target), data, AppVersion.V2_0)
    loaded = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert loaded["users"][0]["legacy_id"] == 7
    assert loaded["users"][0]["username"] == "bob"
    assert loaded["users"][0]["home"]["title"] == "home"


@pytest.mark.parametrize("version", [AppVersion.V3_0, AppVersion.V3_4, "9.9"])
def test_unsupported_version(tmp_path, version):
    target = tmp_path / "export.yaml"
    with pytest.raises(ValueError, match="not supported"):
        create_yaml(str(target), models_v3.Data(), version)
    assert not target.exists()


def test_wrong_data_for_version(tmp_path):
    with pytest.raises(TypeError):
        create_yaml(str(tmp_path / "x.yaml"), models_v3.Data(), AppVersion.V2_0)


def test_read_empty_file(tmp_path):
    target = tmp_path / "empty.yaml"
    target.write_text("", encoding="utf-8")
    assert read_yaml(str(target)) == models_v3.Data()


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_yaml(str(tmp_path / "missing.yaml"))


def test_read_non_mapping(tmp_path):
    target = tmp_path / "list.yaml"
    target.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_yaml(str(target))