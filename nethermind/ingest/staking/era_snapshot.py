import logging

from nethermind.ingest.constants import PERBILL_PER_PERCENT
from nethermind.ingest.context import PipelineContext
from nethermind.ingest.rpc.facade import BlockState
from nethermind.ingest.types.block import EraValidatorRow, ParsedBlock

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("staking").getChild("era")


def is_era_transition(last_known_era: int | None, current_era: int | None) -> bool:
    """
    >>> is_era_transition(None, 4)
    True
    >>> is_era_transition(5, 6)
    True
    >>> is_era_transition(6, 6)
    False
    """
    if current_era is None:
        return False
    return last_known_era is None or current_era > last_known_era


async def snapshot_validators(state: BlockState, era: int, timestamp: int) -> list[EraValidatorRow]:
    """
    Fetches exposure and commission for every active validator.  Validators whose queries fail are skipped, so
    the snapshot may be partial.
    """
    validators = await state.query_validators()
    rows = []
    for address in validators:
        try:
            exposure = await state.query_exposure(era, address)
            prefs = await state.query_commission(era, address)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning(f"Skipping validator {address} for era {era}: {exc}")
            continue

        rows.append(
            EraValidatorRow(
                era=era,
                address=str(address),
                total=str(exposure.total),
                own=str(exposure.own),
                nominators_count=exposure.nominator_count,
                commission=prefs.commission / PERBILL_PER_PERCENT,
                blocked=prefs.blocked,
                timestamp=timestamp,
            )
        )
    return rows


async def snapshot_era(state: BlockState, block: ParsedBlock, context: PipelineContext) -> int | None:
    """
    Annotates staking events with the current era, and records a validator snapshot when the era advances.

    An era transition is detected when no era has been observed by this context yet, or when the current era is
    greater than the last observed era.  On transition, one :class:`EraValidatorRow` is added to the block for each
    active validator.

    The context is not modified.  Callers advance ``context.last_known_era`` to the returned era once the block has
    been persisted, so a block whose write fails still detects the transition when retried.

    :param state: runtime state at the block
    :param block: block being decoded.  Modified in place
    :param context: process wide pipeline state
    :return: the new era if this block starts one, otherwise None
    """
    try:
        current_era = await state.query_current_era()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.debug(f"staking.currentEra unavailable at block #{block.height}: {exc}")
        return None

    if current_era is None:
        return None

    for staking_event in block.staking_events:
        staking_event.era = current_era

    if not is_era_transition(context.last_known_era, current_era):
        return None

    logger.info(f"Era change detected: {context.last_known_era} -> {current_era} at block #{block.height}")
    try:
        validator_rows = await snapshot_validators(state, current_era, block.timestamp)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.warning(f"Failed to fetch validators for era {current_era}: {exc}")
        validator_rows = []

    for row in validator_rows:
        block.add_account(row.address)
    block.era_validators.extend(validator_rows)
    logger.info(f"Indexed {len(validator_rows)} validators for era {current_era}")

    return current_era
