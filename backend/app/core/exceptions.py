"""Engine error types.

Provider failures live in :mod:`providers.base`; persistence failures are
plain ``SQLAlchemyError``. The types here are invariant violations: they
indicate a programming or upstream data error and are fatal to the current
request only.
"""


class ExposureEngineError(Exception):
    """Base class for engine invariant violations."""


class MissingIdentifierError(ExposureEngineError):
    """A provider identifier was required but the subscriber has none."""

    def __init__(self, provider: str, subscriber_id: int | None = None):
        self.provider = provider
        self.subscriber_id = subscriber_id
        super().__init__(f"Subscriber {subscriber_id} has no {provider} identifier")


class IdentifierAlreadySetError(ExposureEngineError):
    """An attempt was made to reassign a write-once provider identifier."""

    def __init__(self, provider: str, subscriber_id: int):
        self.provider = provider
        self.subscriber_id = subscriber_id
        super().__init__(f"Subscriber {subscriber_id} already has a {provider} identifier")


class UnknownProviderError(ExposureEngineError):
    """A record or setting names a provider the engine does not know."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unknown provider: {provider!r}")


class NotEligibleForFreeScanError(ExposureEngineError):
    """The subscriber already scanned, or scans are unavailable in their country."""

    def __init__(self, subscriber_id: int, country_code: str | None):
        self.subscriber_id = subscriber_id
        self.country_code = country_code
        super().__init__(f"Subscriber {subscriber_id} is not eligible for a free scan ({country_code})")


class UnsupportedDialectError(ExposureEngineError):
    """The database has no native insert-or-merge the store can use."""

    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(f"Upsert not supported for dialect {dialect!r}")
