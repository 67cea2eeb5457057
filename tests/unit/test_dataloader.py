import pandas as pd
import pytest

from bike_rental.data import BIKE_RENTAL_SCHEMA, ColumnSpec, DataLoader, validate_schema
from bike_rental.errors import LoadError, SchemaError, SplitError

from conftest import write_csv


@pytest.fixture
def loader(sample_csv):
    return DataLoader(data_path=sample_csv)


def test_load_returns_one_record_per_line_in_order(loader, sample_rows):
    print("\nTEST_LOAD_ONE_RECORD_PER_LINE STARTED")
    df = loader.load()

    assert len(df) == len(sample_rows)
    assert list(df.columns) == [c.name for c in BIKE_RENTAL_SCHEMA]
    assert df["season"].tolist() == [float(r[0]) for r in sample_rows]
    assert df["temp"].tolist() == [float(r[7]) for r in sample_rows]
    assert df["rental_type"].tolist() == [r[10] == "True" for r in sample_rows]
    assert df["rental_type"].dtype == bool
    assert df["hum"].dtype == "float64"
    print("TEST_LOAD_ONE_RECORD_PER_LINE PASSED")


def test_load_accepts_numeric_booleans(tmp_path, sample_rows):
    rows = [r[:10] + ["1" if r[10] == "True" else "0"] for r in sample_rows]
    csv_path = write_csv(tmp_path / "numeric_bool.csv", rows)

    df = DataLoader(csv_path).load()

    assert df["rental_type"].sum() == 5


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(LoadError):
        DataLoader(tmp_path / "missing.csv").load()


def test_load_row_with_extra_column_raises(tmp_path, sample_rows):
    rows = [list(r) for r in sample_rows]
    rows[3] = rows[3] + ["42"]
    csv_path = write_csv(tmp_path / "extra.csv", rows)

    with pytest.raises(LoadError):
        DataLoader(csv_path).load()


def test_load_row_with_missing_column_raises(tmp_path, sample_rows):
    rows = [list(r) for r in sample_rows]
    rows[4] = rows[4][:-1]
    csv_path = write_csv(tmp_path / "short.csv", rows)

    with pytest.raises(LoadError):
        DataLoader(csv_path).load()


def test_load_unparseable_number_raises(tmp_path, sample_rows):
    rows = [list(r) for r in sample_rows]
    rows[2][7] = "warm"
    csv_path = write_csv(tmp_path / "bad_number.csv", rows)

    with pytest.raises(LoadError, match="Línea 4"):
        DataLoader(csv_path).load()


def test_load_unparseable_boolean_raises(tmp_path, sample_rows):
    rows = [list(r) for r in sample_rows]
    rows[0][10] = "maybe"
    csv_path = write_csv(tmp_path / "bad_bool.csv", rows)

    with pytest.raises(LoadError):
        DataLoader(csv_path).load()


def test_load_header_with_wrong_width_raises_schema_error(tmp_path, sample_rows):
    rows = [r[1:] for r in sample_rows]
    header = "Month,Hour,Holiday,Weekday,WorkingDay,WeatherCondition,Temperature,Humidity,Windspeed,RentalType"
    csv_path = write_csv(tmp_path / "narrow.csv", rows, header=header)

    with pytest.raises(SchemaError):
        DataLoader(csv_path).load()


def test_validate_schema_rejects_duplicates_and_gaps():
    with pytest.raises(SchemaError):
        validate_schema([ColumnSpec("a", 0), ColumnSpec("a", 1)])
    with pytest.raises(SchemaError):
        validate_schema([ColumnSpec("a", 0), ColumnSpec("b", 2)])
    with pytest.raises(SchemaError):
        validate_schema([ColumnSpec("a", 0, "int")])


def test_validate_schema_sorts_by_position():
    columns = validate_schema([ColumnSpec("b", 1), ColumnSpec("a", 0, "bool")])
    assert [c.name for c in columns] == ["a", "b"]


def test_unknown_target_raises(sample_csv):
    with pytest.raises(SchemaError):
        DataLoader(sample_csv, target_col="cnt")


def test_split_ten_rows_routes_two_to_test(loader):
    df = loader.load()
    X_train, X_test, y_train, y_test = loader.split(df, test_size=0.2, random_state=0)

    assert len(X_test) == 2
    assert len(X_train) == 8
    assert "rental_type" not in X_train.columns
    assert list(y_train.index) == list(X_train.index)


def test_split_is_deterministic_and_disjoint(loader):
    df = loader.load()
    first = loader.split(df, test_size=0.3, random_state=7)
    second = loader.split(df, test_size=0.3, random_state=7)

    assert list(first[0].index) == list(second[0].index)
    assert list(first[1].index) == list(second[1].index)

    train_idx, test_idx = set(first[0].index), set(first[1].index)
    assert train_idx.isdisjoint(test_idx)
    assert train_idx | test_idx == set(df.index)


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1, 1.5])
def test_split_rejects_invalid_fraction(loader, fraction):
    df = loader.load()
    with pytest.raises(SplitError):
        loader.split(df, test_size=fraction)


def test_split_rejects_empty_fold(loader):
    df = loader.load().head(1)
    with pytest.raises(SplitError):
        loader.split(df, test_size=0.2)


@pytest.mark.parametrize("token", ["inf", "-inf", "nan"])
def test_load_non_finite_number_raises(tmp_path, sample_rows, token):
    rows = [list(r) for r in sample_rows]
    for row in rows:
        if row[0] == 1:
            row[9] = token
    csv_path = write_csv(tmp_path / "non_finite.csv", rows)

    with pytest.raises(LoadError, match="Línea 2"):
        DataLoader(csv_path).load()
