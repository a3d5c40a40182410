"""
harvest_core - browser-session data export engine

Connectors drive a logged-in browser through a small host contract:
an authentication gate waits for the human when needed, network captures
and DOM selector chains collect the data, and the result assembler emits
one normalized record per run.

Usage:
    import asyncio
    from harvest_core import run_connector

    outcome = asyncio.run(run_connector("instagram"))
"""

from .assembler import ExportSummary, ExtractionRecord, ResultAssembler, RunOutcome
from .capture import CapturedPayload, CaptureRegistry, CaptureSubscription, NetworkEvent
from .collector import CollectionPage, PageCursor, PaginatedCollector, StopReason, identity_from
from .config import Config, config
from .connector import Connector
from .context import RunContext
from .errors import (
    CollaboratorError,
    ConfirmationAborted,
    HarvestError,
    UnknownConnectorError,
    format_error,
)
from .extraction import ItemField, Locator, SectionSpec, extract_field, extract_fields, extract_section
from .gate import AuthenticationGate, GateState
from .host import SidecarHost
from .probe import ProbeEvaluator, ProbeResult
from .retry import RetryPolicy, poll
from .connectors import get_connector
from .runner import run_connector

__all__ = [
    'AuthenticationGate',
    'CaptureRegistry',
    'CaptureSubscription',
    'CapturedPayload',
    'CollaboratorError',
    'CollectionPage',
    'Config',
    'ConfirmationAborted',
    'Connector',
    'ExportSummary',
    'ExtractionRecord',
    'GateState',
    'HarvestError',
    'ItemField',
    'Locator',
    'NetworkEvent',
    'PageCursor',
    'PaginatedCollector',
    'ProbeEvaluator',
    'ProbeResult',
    'ResultAssembler',
    'RetryPolicy',
    'RunContext',
    'RunOutcome',
    'SectionSpec',
    'SidecarHost',
    'StopReason',
    'UnknownConnectorError',
    'config',
    'extract_field',
    'extract_fields',
    'extract_section',
    'format_error',
    'get_connector',
    'identity_from',
    'poll',
    'run_connector',
]

__version__ = '1.0.0'
