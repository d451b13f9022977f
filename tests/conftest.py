"""Shared fixtures: a small muscle/motion catalog used across the scoring tests.

Muscles (label order within each parent):
    Arms > Biceps > Biceps Long Head, Biceps Short Head
    Arms > Triceps
    Core (not scorable) > Abs
    Legs > Glutes, Hamstrings, Quadriceps

Motions:
    SQUAT > SQUAT_PAUSE > SQUAT_PAUSE_TEMPO
    CURL
"""

import copy

import pytest

from motionlab.config.scoring_config_loader import ScoringConfigLoader, ScoringEngineConfig
from motionlab.scoring.catalog import CatalogSnapshot
from motionlab.scoring.composition import ScoreCompositionEngine
from motionlab.scoring.hierarchy import MotionHierarchy, MuscleHierarchy
from motionlab.scoring.records import MotionRecord, MuscleRecord


RAW_CATALOG = {
    "muscles": [
        {"id": "ARMS", "label": "Arms", "parent_ids": []},
        {"id": "BICEPS", "label": "Biceps", "parent_ids": ["ARMS"]},
        {"id": "BICEPS_LONG", "label": "Biceps Long Head", "parent_ids": ["BICEPS"]},
        {"id": "BICEPS_SHORT", "label": "Biceps Short Head", "parent_ids": ["BICEPS"]},
        {"id": "TRICEPS", "label": "Triceps", "parent_ids": ["ARMS"]},
        {"id": "LEGS", "label": "Legs", "parent_ids": []},
        {"id": "QUADS", "label": "Quadriceps", "parent_ids": ["LEGS"]},
        {"id": "GLUTES", "label": "Glutes", "parent_ids": ["LEGS"]},
        {"id": "HAMSTRINGS", "label": "Hamstrings", "parent_ids": ["LEGS"]},
        {"id": "CORE", "label": "Core", "parent_ids": [], "is_scorable": False},
        {"id": "ABS", "label": "Abs", "parent_ids": ["CORE"]},
    ],
    "motions": [
        {"id": "SQUAT", "label": "Squat", "base_targets": {"QUADS": 5, "GLUTES": 3}},
        {
            "id": "SQUAT_PAUSE",
            "label": "Pause Squat",
            "parent_id": "SQUAT",
            "base_targets": {"QUADS": 5, "GLUTES": 3},
        },
        {
            "id": "SQUAT_PAUSE_TEMPO",
            "label": "Tempo Pause Squat",
            "parent_id": "SQUAT_PAUSE",
            "base_targets": {"QUADS": 4, "GLUTES": 3},
        },
        {"id": "CURL", "label": "Curl", "base_targets": {"BICEPS": 4}},
    ],
    "modifier_tables": {
        "stances": [
            {
                "id": "WIDE",
                "label": "Wide",
                "delta_rules": {
                    "SQUAT": {"GLUTES": 1, "QUADS": -0.5},
                    "SQUAT_PAUSE": "inherit",
                    "SQUAT_PAUSE_TEMPO": "inherit",
                },
            },
            {
                "id": "NARROW",
                "label": "Narrow",
                "delta_rules": {
                    "SQUAT": {"QUADS": 1},
                    "SQUAT_PAUSE": {"QUADS": 1.5, "CORE": 2},
                },
            },
        ],
        "paths": [
            {
                "id": "ARC",
                "label": "Arc",
                "delta_rules": {"SQUAT": {"GLUTES": 0.25, "HAMSTRINGS": 0.5}},
            },
        ],
        "grips": [
            {"id": "SUPINATED", "label": "Supinated", "delta_rules": {"CURL": {"BICEPS_SHORT": 0.5}}},
            {"id": "NEUTRAL", "label": "Neutral", "delta_rules": {"CURL": {}}},
        ],
    },
}


@pytest.fixture(autouse=True)
def fresh_config_loader():
    """Catalogs read scorability defaults from the loader; start each test uncached."""
    ScoringConfigLoader.reset_instance()
    yield
    ScoringConfigLoader.reset_instance()


@pytest.fixture
def catalog_data():
    """Raw catalog dump (deep copy, safe to mutate)."""
    return copy.deepcopy(RAW_CATALOG)


@pytest.fixture
def muscle_records(catalog_data):
    return [
        MuscleRecord(
            id=m["id"],
            label=m["label"],
            parent_ids=tuple(m["parent_ids"]),
            is_scorable=m.get("is_scorable", True),
        )
        for m in catalog_data["muscles"]
    ]


@pytest.fixture
def muscle_hierarchy(muscle_records):
    return MuscleHierarchy(muscle_records)


@pytest.fixture
def motion_hierarchy(catalog_data):
    return MotionHierarchy(
        MotionRecord(
            id=m["id"],
            label=m["label"],
            parent_id=m.get("parent_id"),
            base_targets={k: float(v) for k, v in m["base_targets"].items()},
        )
        for m in catalog_data["motions"]
    )


@pytest.fixture
def scoring_config():
    """Default engine config, independent of the bundled YAML."""
    return ScoringEngineConfig()


@pytest.fixture
def catalog(catalog_data):
    return CatalogSnapshot.from_raw(catalog_data)


@pytest.fixture
def engine(catalog, scoring_config):
    return ScoreCompositionEngine(catalog, config=scoring_config, cache_size=16)


def make_hierarchy(*edges):
    """Build a MuscleHierarchy from ``(id, parent_id_or_None)`` pairs; label = id."""
    return MuscleHierarchy(
        MuscleRecord(id=muscle_id, label=muscle_id, parent_ids=(parent_id,) if parent_id else ())
        for muscle_id, parent_id in edges
    )


@pytest.fixture
def hierarchy_factory():
    return make_hierarchy
