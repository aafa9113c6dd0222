"""Platform -> adapter dispatch."""

from regindex.errors import AdapterNotAvailableError
from regindex.fetching.client import RateLimitedClient
from regindex.models.enums import Platform
from regindex.models.unit import Unit
from regindex.sources.base import SourceAdapter
from regindex.sources.ecfr import EcfrAdapter
from regindex.sources.elaws import ElawsAdapter
from regindex.sources.municode import MunicodeAdapter
from regindex.sources.texas import TexasStatuteAdapter, TexasTacAdapter

ADAPTERS: dict[Platform, type[SourceAdapter]] = {
    Platform.ECFR: EcfrAdapter,
    Platform.TEXAS_STATUTES: TexasStatuteAdapter,
    Platform.TEXAS_TAC: TexasTacAdapter,
    Platform.MUNICODE: MunicodeAdapter,
    Platform.ELAWS: ElawsAdapter,
}


def get_adapter(unit: Unit, client: RateLimitedClient) -> SourceAdapter:
    """Instantiate the adapter for ``unit``'s platform.

    Raises AdapterNotAvailableError for disabled units or platforms without
    an adapter.
    """
    if not unit.enabled:
        reason = unit.skip_reason or "unit is disabled"
        raise AdapterNotAvailableError(f"No adapter for {unit.id}: {reason}")

    adapter_cls = ADAPTERS.get(unit.platform)
    if adapter_cls is None:
        raise AdapterNotAvailableError(f"No adapter registered for platform {unit.platform.value}")
    return adapter_cls(client)
