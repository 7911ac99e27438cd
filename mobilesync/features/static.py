from mobilesync.features.base import Feature


class StaticFeature(Feature):
    """A feature fully described by mobile-hub-project.yml. No pre-update work."""

    def __init__(self, name, spec_key):
        self.name = name
        self.spec_key = spec_key

    def pre_update(self, state, config, snapshot):
        return None
