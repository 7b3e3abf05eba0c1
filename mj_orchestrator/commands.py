"""Top-level operations exposed to the command surface.

Each operation builds on an explicit :class:`Runtime`; nothing here retries
or recovers from a failure, which propagates to the caller unchanged.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .aggregation import AggregatedResults, ResultAggregator
from .ballots import BallotSubmitter, IdentityPool
from .chart import generate_chart
from .config import OrchestratorConfig, save_contract_address
from .correlator import EventCorrelator
from .decryption import DecryptionOrchestrator
from .encryption import EncryptionSDK, RelayerEncryptionClient
from .ledger import LedgerClient, Web3LedgerClient, deploy_contract
from .lifecycle import ElectionLifecycleManager
from .models import CandidateResult, DecryptionRequest, Election, Grade, Receipt
from .oracle import OracleService, RelayerOracleClient
from .relayer import RelayerRPC
from .simulation import SimulatedEncryption, SimulatedLedger, SimulatedOracle

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Components wired for one process, all sharing one configuration."""

    config: OrchestratorConfig
    ledger: LedgerClient
    identities: IdentityPool
    sender: str
    correlator: EventCorrelator
    lifecycle: ElectionLifecycleManager
    ballots: BallotSubmitter
    decryption: DecryptionOrchestrator
    aggregator: ResultAggregator
    rng: random.Random

    @classmethod
    def assemble(
        cls,
        config: OrchestratorConfig,
        ledger: LedgerClient,
        identities: IdentityPool,
        encryption: EncryptionSDK,
        oracle: OracleService,
    ) -> "Runtime":
        sender = config.sender or identities[0]
        correlator = EventCorrelator(ledger, poll_interval=config.poll_interval)
        return cls(
            config=config,
            ledger=ledger,
            identities=identities,
            sender=sender,
            correlator=correlator,
            lifecycle=ElectionLifecycleManager(
                ledger, correlator, identity=sender, creation_timeout=config.creation_timeout
            ),
            ballots=BallotSubmitter(ledger, encryption),
            decryption=DecryptionOrchestrator(
                ledger,
                correlator,
                oracle,
                identity=sender,
                decryption_timeout=config.decryption_timeout,
                oracle_timeout=config.oracle_timeout,
            ),
            aggregator=ResultAggregator(),
            rng=random.Random(config.random_seed),
        )

    @classmethod
    async def connect(cls, config: OrchestratorConfig) -> "Runtime":
        """Wire the runtime against a JSON-RPC node and the relayer.

        The contract address must already be on record; otherwise
        :class:`~mj_orchestrator.errors.ConfigurationMissing` is raised before
        any ledger call.
        """

        config = config.resolve_contract_address()
        ledger = Web3LedgerClient.connect(config)
        identities = await IdentityPool.from_ledger(ledger)
        rpc = RelayerRPC(config.relayer_url)
        return cls.assemble(config, ledger, identities, RelayerEncryptionClient(rpc), RelayerOracleClient(rpc))

    @classmethod
    def simulated(
        cls,
        config: Optional[OrchestratorConfig] = None,
        *,
        ledger: Optional[SimulatedLedger] = None,
        oracle: Optional[SimulatedOracle] = None,
    ) -> "Runtime":
        config = config or OrchestratorConfig()
        ledger = ledger or SimulatedLedger()
        oracle = oracle or SimulatedOracle(ledger)
        config = config.with_contract_address(ledger.address)
        identities = IdentityPool(ledger.identities)
        return cls.assemble(config, ledger, identities, SimulatedEncryption(ledger), oracle)


@dataclass(frozen=True)
class ElectionResults:
    election_id: int
    results: List[CandidateResult]
    vote_count: int
    aggregated: AggregatedResults


async def deploy(config: OrchestratorConfig) -> str:
    """Deploy the contract and record its address for later commands."""

    logger.info("Deploying election contract.")
    address = await deploy_contract(config)
    save_contract_address(config.deployment_file, address)
    logger.info("Contract deployed at : %s", address)
    return address


async def create_election(runtime: Runtime, candidate_number: int, label: str) -> Election:
    return await runtime.lifecycle.create_election(candidate_number, label)


async def set_voting_state(runtime: Runtime, election_id: int, open: bool) -> Receipt:
    return await runtime.lifecycle.set_voting_state(election_id, open)


async def cast_random_ballot(
    runtime: Runtime, election_id: int, *, voter: Optional[str] = None
) -> Tuple[List[Grade], Receipt]:
    return await runtime.ballots.cast_random_ballot(
        election_id, voter=voter or runtime.sender, rng=runtime.rng
    )


async def decrypt_election(runtime: Runtime, election_id: int) -> List[DecryptionRequest]:
    return await runtime.decryption.decrypt_election(election_id)


async def get_results(runtime: Runtime, election_id: int) -> ElectionResults:
    """Fetch decrypted tallies and aggregate them against the vote count."""

    results = await runtime.decryption.fetch_results(election_id)
    vote_count = int(await runtime.ledger.call("getVoteCount", election_id))
    for result in results:
        logger.info(
            "Results for candidate %d (%d votes) : %s",
            result.candidate_id + 1,
            result.licit_votes,
            result.as_dict(),
        )
    aggregated = runtime.aggregator.aggregate(results, vote_count)
    return ElectionResults(election_id=election_id, results=results, vote_count=vote_count, aggregated=aggregated)


def render_chart(runtime: Runtime, results: ElectionResults, output: Optional[Path] = None) -> Path:
    """Render the results, normalised on the first candidate's licit total."""

    return generate_chart(
        results.aggregated.matrix(),
        results.aggregated.total_licit_votes,
        output or runtime.config.chart_path,
    )


async def run_scenario(
    runtime: Runtime,
    *,
    candidate_number: int,
    label: str,
    voters: int,
    illicit_ballots: Sequence[Sequence[int]] = (),
) -> ElectionResults:
    """Run a full election: create, open, vote, close, decrypt and aggregate.

    Voters are taken in order from the runtime's identity pool; each
    ``illicit_ballots`` entry is cast as-is by the next identity.
    """

    needed = voters + len(illicit_ballots)
    if needed > len(runtime.identities):
        raise ValueError(f"Scenario needs {needed} identities, pool has {len(runtime.identities)}")
    election = await create_election(runtime, candidate_number, label)
    await set_voting_state(runtime, election.id, True)
    for index in range(voters):
        await cast_random_ballot(runtime, election.id, voter=runtime.identities[index])
    for offset, values in enumerate(illicit_ballots):
        await runtime.ballots.cast_ballot(election.id, values, voter=runtime.identities[voters + offset])
    await set_voting_state(runtime, election.id, False)
    await decrypt_election(runtime, election.id)
    return await get_results(runtime, election.id)


__all__ = [
    "ElectionResults",
    "Runtime",
    "cast_random_ballot",
    "create_election",
    "decrypt_election",
    "deploy",
    "get_results",
    "render_chart",
    "run_scenario",
    "set_voting_state",
]
