import asyncio
import signal
import sys

from dotenv import load_dotenv

from runtime.version import as_string
from services.discord.client import DiscordClient
from shared.config.conventions import load_convention_config
from shared.logging.logger import get_logger

log = get_logger("core.app")


async def main(stop_event: asyncio.Event):
    # --------------------------------------------------
    # ENV
    # --------------------------------------------------
    load_dotenv()
    log.info("Environment variables loaded")
    log.info(f"{as_string()} booting")

    # --------------------------------------------------
    # CONFIG
    # --------------------------------------------------
    config = load_convention_config()
    log.info(
        f"Config loaded: api_url={config.api_url} "
        f"image_query={config.render.enable_image_query} "
        f"image_batch_query={config.render.enable_image_batch_query} "
        f"mode={config.render.image_display_mode.value}"
    )

    # --------------------------------------------------
    # DISCORD RUNTIME
    # --------------------------------------------------
    client = DiscordClient(config)
    client_task = asyncio.create_task(client.run())

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL OR CLIENT EXIT
    # --------------------------------------------------
    stop_task = asyncio.create_task(stop_event.wait())
    done, _ = await asyncio.wait(
        {client_task, stop_task},
        return_when=asyncio.FIRST_COMPLETED,
    )

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN
    # --------------------------------------------------
    try:
        await client.shutdown()
    except Exception as e:
        log.warning(f"Discord shutdown error ignored: {e}")

    stop_task.cancel()
    if client_task in done and not client_task.cancelled():
        err = client_task.exception()
        if err is not None:
            log.error(f"Discord client exited with error: {err}")

    log.info(f"{as_string()} stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except RuntimeError:
            stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError as e:
        log.warning(f"Signal handlers not installed: {e}")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run():
    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received, shutdown initiated")
        stop_event.set()

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
