#!/usr/bin/env python3
"""
vidgen - command line entry point

Provider credentials come from the environment:
    VIDGEN_PROVIDER   kling (default), jimeng, vidu
    VIDGEN_API_KEY    "access_key,secret_key" for Kling
    VIDGEN_BASE_URL   optional endpoint override

Usage:
    vidgen models
    vidgen generate --prompt "Birds at sunrise" --size 1280x720 --wait
    vidgen status <task_id>
    vidgen wait <task_id> --interval 10
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from vidgen.client import Client
from vidgen.core.config import ClientConfig, ProviderConfig
from vidgen.core.errors import VidgenError
from vidgen.relay import parse_size
from vidgen.types import GenerationRequest, KlingOptions, TaskResult, TaskStatus

logger = logging.getLogger("vidgen")


def build_client(debug: bool = False) -> Client:
    provider_config = ProviderConfig.from_env()
    issues = provider_config.validate()
    if issues:
        raise VidgenError("; ".join(issues))

    client_config = ClientConfig.from_env()
    client_config.debug = client_config.debug or debug

    provider_type = os.getenv("VIDGEN_PROVIDER", "kling")
    return Client(provider_type, provider_config, client_config)


def print_result(result: TaskResult):
    print(f"Task: {result.task_id}")
    print(f"Status: {result.status}")
    if result.url:
        print(f"Video URL: {result.url}")
    if result.format:
        print(f"Format: {result.format}")
    if result.metadata and result.metadata.duration is not None:
        print(f"Duration: {result.metadata.duration:.1f} seconds")
    if result.error:
        print(f"Error {result.error.code}: {result.error.message}")


async def list_models(client: Client) -> int:
    print(f"Provider: {client.get_provider_name()}")
    for model in client.get_supported_models():
        print(f"  - {model}")
    return 0


async def generate(
    client: Client,
    prompt: str,
    image: Optional[str],
    duration: float,
    size: str,
    model: Optional[str],
    mode: Optional[str],
    wait: bool,
    interval: float,
) -> int:
    width, height = parse_size(size)
    request = GenerationRequest(
        prompt=prompt or "",
        image=image or "",
        duration=duration,
        width=width,
        height=height,
        model=model or "",
        options=KlingOptions(mode=mode) if mode else None,
    )

    resp = await client.create_generation(request)
    print(f"Task created, ID: {resp.task_id}")

    if not wait:
        return 0
    return await wait_for(client, resp.task_id, interval)


async def show_status(client: Client, task_id: str) -> int:
    result = await client.get_generation(task_id)
    print_result(result)
    return 0


async def wait_for(client: Client, task_id: str, interval: float) -> int:
    logger.info(f"Waiting for task {task_id} (polling every {interval:.0f}s)")
    result = await client.wait_for_completion(task_id, interval)
    print_result(result)
    return 0 if result.status == TaskStatus.SUCCEEDED else 1


async def run(args: argparse.Namespace) -> int:
    async with build_client(debug=args.debug) as client:
        if args.command == "models":
            return await list_models(client)
        if args.command == "generate":
            return await generate(
                client,
                prompt=args.prompt,
                image=args.image,
                duration=args.duration,
                size=args.size,
                model=args.model,
                mode=args.mode,
                wait=args.wait,
                interval=args.interval,
            )
        if args.command == "status":
            return await show_status(client, args.task_id)
        if args.command == "wait":
            return await wait_for(client, args.task_id, args.interval)
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="vidgen - unified video generation client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Text to video, wait for the result
    vidgen generate --prompt "Birds flying at sunrise" --size 1280x720 --wait

    # Image to video
    vidgen generate --image https://example.com/cat.jpg --prompt "Cat turns its head"

    # Check a task
    vidgen status 8f2c1d
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Log retries and polls")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("models", help="List models of the configured provider")

    gen_parser = subparsers.add_parser("generate", help="Submit a generation task")
    gen_parser.add_argument("--prompt", "-p", default="", help="Text prompt")
    gen_parser.add_argument("--image", "-i", help="Image URL or base64 for image-to-video")
    gen_parser.add_argument("--duration", "-d", type=float, default=5.0, help="Seconds (5 or 10 on Kling)")
    gen_parser.add_argument("--size", "-s", default="1280x720", help="WIDTHxHEIGHT")
    gen_parser.add_argument("--model", "-m", help="Model identifier")
    gen_parser.add_argument("--mode", help="Vendor mode override, e.g. std or pro")
    gen_parser.add_argument("--wait", "-w", action="store_true", help="Poll until the task finishes")
    gen_parser.add_argument("--interval", type=float, default=10.0, help="Poll interval in seconds")

    status_parser = subparsers.add_parser("status", help="Show a task's current state")
    status_parser.add_argument("task_id", help="Task ID")

    wait_parser = subparsers.add_parser("wait", help="Poll a task until it finishes")
    wait_parser.add_argument("task_id", help="Task ID")
    wait_parser.add_argument("--interval", type=float, default=10.0, help="Poll interval in seconds")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        return asyncio.run(run(args))
    except VidgenError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except asyncio.TimeoutError:
        logger.error("Request timed out")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
