from abc import ABC, abstractmethod


class Feature(ABC):
    """Base interface for backend feature adapters.

    name is the feature's CLI name; spec_key is its key under `features:` in
    mobile-hub-project.yml.
    """

    name = None
    spec_key = None

    @abstractmethod
    def pre_update(self, state, config, snapshot):
        """Prepare the remote side before the backend contents are uploaded.

        Runs concurrently with the other enabled features' hooks. Raises to
        fail the push.
        """
        pass
