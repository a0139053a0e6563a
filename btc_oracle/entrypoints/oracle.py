"""Oracle entrypoint.

Watches bitcoind, publishes a summary of every confirmed block to the
ledger gateway and answers merkle proof requests from chat.
"""

import argparse
import asyncio
import os
import signal
import sys

import bittensor as bt
from dotenv import load_dotenv


def main() -> None:
    # Load .env if not in test mode
    if os.environ.get("BTC_ORACLE_TEST_MODE") != "true":
        load_dotenv()

    from btc_oracle.config import add_args, from_args

    parser = argparse.ArgumentParser(description="Bitcoin block oracle")
    bt.Wallet.add_args(parser)
    bt.logging.add_args(parser)
    add_args(parser)
    args = parser.parse_args()

    config = from_args(args)
    bt.logging.info({"oracle": "starting", "device_name": config.device_name})

    if not config.mock and not config.ledger_url:
        bt.logging.error("BTC_ORACLE__LEDGER__LEDGER_URL is required unless --mock is set")
        sys.exit(1)

    from btc_oracle.address import get_network
    from btc_oracle.canonical import BlockCanonicalizer
    from btc_oracle.chain.esplora_client import EsploraHistoryClient
    from btc_oracle.chain.rpc_client import BitcoinRPCClient
    from btc_oracle.ledger.http_client import HTTPLedgerClient
    from btc_oracle.ledger.memory import InMemoryLedger
    from btc_oracle.messaging.log import LoggingMessenger
    from btc_oracle.messaging.webhook import WebhookMessenger
    from btc_oracle.oracle.notifications import OperatorNotifier
    from btc_oracle.oracle.publisher import Publisher
    from btc_oracle.oracle.reconciler import GapReconciler
    from btc_oracle.oracle.responder import ProofResponder
    from btc_oracle.oracle.runtime import OracleRuntime
    from btc_oracle.oracle.tracker import PublicationTracker
    from btc_oracle.server import OracleHTTPServer

    chain = BitcoinRPCClient(config.rpc_url, config.rpc_user, config.rpc_password)
    history = EsploraHistoryClient(config.esplora_url, min_confirmations=config.min_confirmations)

    if config.mock:
        ledger = InMemoryLedger()
    else:
        wallet_name = os.environ.get("BTC_ORACLE__WALLET__NAME", getattr(args, "wallet.name", "default"))
        wallet_hotkey = os.environ.get("BTC_ORACLE__WALLET__HOTKEY", getattr(args, "wallet.hotkey", "default"))
        wallet = bt.Wallet(name=wallet_name, hotkey=wallet_hotkey)
        ledger = HTTPLedgerClient(config.ledger_url, wallet=wallet)
        bt.logging.info({"oracle_author": wallet.hotkey.ss58_address})

    transport = WebhookMessenger(config.outbound_url) if config.outbound_url else LoggingMessenger()
    notifier = OperatorNotifier(config.admin_webhook_url, source=config.device_name)

    canonicalizer = BlockCanonicalizer(
        chain,
        read_attempts=config.block_read_attempts,
        retry_delay=config.block_read_delay,
    )
    publisher = Publisher(
        canonicalizer,
        PublicationTracker(ledger),
        ledger,
        notifier=notifier,
        retry_delay=config.retry_delay,
        retry_jitter=config.retry_jitter,
    )
    reconciler = GapReconciler(
        chain,
        ledger,
        publisher,
        min_confirmations=config.min_confirmations,
        history_limit=config.history_limit,
    )
    responder = ProofResponder(
        history,
        canonicalizer,
        ledger,
        network=get_network(config.network),
        pairing_secret=config.pairing_secret,
    )
    runtime = OracleRuntime(
        reconciler,
        publisher,
        responder,
        transport,
        notifier=notifier,
        config={"poll_interval_seconds": config.poll_interval},
    )
    server = OracleHTTPServer(runtime, host=config.http_host, port=config.http_port, auth_token=config.http_token)

    # Graceful shutdown
    loop = asyncio.new_event_loop()

    def _signal_handler(sig, frame):
        bt.logging.info({"oracle": "shutdown_signal_received"})
        runtime.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    async def _serve() -> None:
        await server.start()
        try:
            await runtime.run()
        finally:
            await server.stop()

    try:
        loop.run_until_complete(_serve())
    except KeyboardInterrupt:
        bt.logging.info({"oracle": "keyboard_interrupt"})
    finally:
        for client in (chain, history, ledger, transport, notifier):
            close = getattr(client, "close", None)
            if close is not None:
                loop.run_until_complete(close())
        loop.close()
        bt.logging.info({"oracle": "stopped"})

    if runtime.fatal_error:
        sys.exit(2)


if __name__ == "__main__":
    main()
