"""Backend feature registry.

The enabled features of a project are the keys under `features:` in
<backend_dir>/mobile-hub-project.yml, in file order.
"""

from pathlib import Path

import yaml

from mobilesync.features.cloud_api import CloudApiFeature
from mobilesync.features.static import StaticFeature

PROJECT_SPEC_FILE = "mobile-hub-project.yml"

FEATURES = {
    "cloud-api": CloudApiFeature,
    "database": lambda: StaticFeature("database", "database"),
    "user-signin": lambda: StaticFeature("user-signin", "sign-in"),
    "user-files": lambda: StaticFeature("user-files", "user-files"),
    "analytics": lambda: StaticFeature("analytics", "mobile-analytics"),
    "hosting": lambda: StaticFeature("hosting", "content-delivery"),
}

# key under `features:` in mobile-hub-project.yml → feature name
SPEC_KEYS = {factory().spec_key: name for name, factory in FEATURES.items()}


def get_feature(name):
    if name not in FEATURES:
        raise ValueError(f"Unknown feature: {name}. Available: {list(FEATURES.keys())}")
    return FEATURES[name]()


def load_project_spec(backend_path):
    spec_path = Path(backend_path) / PROJECT_SPEC_FILE
    if not spec_path.exists():
        return {}
    try:
        spec = yaml.safe_load(spec_path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {spec_path}: {e}")
    return spec or {}


def enabled_feature_names(backend_path):
    features = load_project_spec(backend_path).get("features") or {}
    return [SPEC_KEYS[key] for key in features if key in SPEC_KEYS]


def get_enabled_features(backend_path):
    """Instantiate the enabled features, preserving their order in the spec file."""
    return [get_feature(name) for name in enabled_feature_names(backend_path)]
