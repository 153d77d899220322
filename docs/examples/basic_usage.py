"""Basic usage examples"""

import asyncio

from ordinals_data import BitcoinService, DataClientError
from ordinals_data.config import load_config
from ordinals_data.observability import setup_logging


async def main():
    setup_logging(level="INFO", json_output=False)

    # Build the service from ~/.ordinals-data/config.toml (and ORDINALS_* overrides)
    service = BitcoinService.from_config(load_config())

    try:
        tip = await service.get_current_block_height()
        print(f"Chain tip: {tip}")

        # First call goes to the network, the second is served from cache
        for _ in range(2):
            block = await service.get_block_info(tip - 1)
            print(f"Block {block.data.height} {block.data.hash} source={block.source}")

        # Failures come back in place
        for result in await service.get_blocks([tip - 3, tip - 2]):
            if isinstance(result, DataClientError):
                print(f"Failed: {result.kind.value} {result.message}")
            else:
                print(f"Block {result.data.height} stale={result.stale}")

        print(service.get_metrics())
        print(service.health())
    finally:
        await service.aclose()


if __name__ == "__main__":
    asyncio.run(main())
