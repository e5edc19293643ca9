import csv
import dataclasses
import io

from evosim.core.statistics import DataSeries, SimulationDatabase
from evosim.sim.replicas import run_generation
from evosim.worlds import BushworldDatabase

from .conftest import make_bush_world


def test_empty_database_writes_marker():
    assert SimulationDatabase().to_csv_string() == "empty database\n"


def test_values_record():
    record = SimulationDatabase.values_record("Fly", [1.5, 2.5], fitness=3.0)
    assert record.values() == [1.5, 2.5]
    assert record.fitness == 3.0
    assert record.species == "Fly"


def test_missing_records_keep_generation_numbers():
    database = SimulationDatabase()
    series = database.add_series(DataSeries("Values", "Fly"))
    series.records.extend([None, SimulationDatabase.values_record("Fly", [4.0])])
    rows = list(csv.reader(io.StringIO(database.to_csv_string())))
    assert rows == [["2", "Values", "Fly", "0.0", "4.0"]]
    assert database.generations() == 2


def test_bushworld_database_collects_every_series(tmp_path):
    world = make_bush_world(seed=8)
    database = BushworldDatabase()
    for _ in range(2):
        run_generation(world)
        database.collect(world)

    assert len(database.series) == 10
    assert database.generations() == 2
    assert all(len(series.records) == 2 for series in database.series)

    target = tmp_path / "stats.csv"
    database.write_csv(target)
    rows = list(csv.reader(target.open(encoding="utf-8")))
    titles = {row[1] for row in rows}
    assert "Average Fly Genome" in titles
    assert "Best Fitness" in titles
    assert {row[0] for row in rows} == {"1", "2"}
    best_fitness_rows = [row for row in rows if row[1] == "Best Fitness"]
    assert all(row[2] == "Fly and Wasp" and len(row) == 6 for row in best_fitness_rows)

    database.clear()
    assert database.generations() == 0


def test_average_genome_record_is_detached():
    world = make_bush_world(seed=9)
    run_generation(world)
    record = SimulationDatabase.average_genome_record(world, "Fly")
    assert record is not None
    assert record.name == "Average Fly"
    record.set(0, 42.0)
    assert world.average_genome("Fly").genes[0] != 42.0


def test_series_hold_only_what_the_export_writes():
    assert [f.name for f in dataclasses.fields(DataSeries)] == ["title", "species_name", "records"]
    series = DataSeries("Best Fitness", "Fly and Wasp")
    assert series.records == []
    database = BushworldDatabase()
    assert [(s.title, s.species_name) for s in database.series][:2] == [
        ("Average Fly Genome", "Fly"),
        ("Best Fly Genome", "Fly"),
    ]
