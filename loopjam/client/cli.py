"""
Terminal client for a loopjam relay.

Usage:
    loopjam-client [relay_url]

Examples:
    loopjam-client
    loopjam-client ws://localhost:8080/v1/relay/ws

Commands (while connected):
    <path>            record-and-share an audio file as a new track
    play / pause      start or stop the loop
    list              show the tracks on the ruler
    move <i> <px>     place track i at offset px
    del <i>           delete track i
    bounce <s> <out>  render s seconds of the mix to a WAV file
    quit / exit       disconnect
"""
from __future__ import annotations

import argparse
import asyncio
import shlex
import sys
from pathlib import Path

import soundfile as sf

from loopjam.client.app import LoopClient
from loopjam.client.capture import FileRecorder
from loopjam.client.engine import MixerEngine
from loopjam.client.output import AudioOutput
from loopjam.client.relay_client import RelayClient
from loopjam.core import settings
from loopjam.core.errors import RelayConnectionError
from loopjam.core.logging import setup_logging


def format_tracks(client: LoopClient) -> str:
    ruler = client.loop.ruler_width_px
    lines = [
        f"   loop {client.loop.loop_duration_s:.2f}s @ {client.loop.tempo_bpm:g} BPM, "
        f"{'playing' if client.session.is_playing else 'paused'}"
    ]
    for view in client.session.track_views():
        start = client.loop.offset_to_seconds(view.offset_px)
        lines.append(
            f"   #{view.index} [{view.source:>6}] {view.offset_px:7.1f}px +{view.width_px:6.1f}px "
            f"(starts {start:.2f}s)"
        )
    if len(lines) == 1:
        lines.append("   (no tracks)")
    lines.append(f"   ruler {ruler:g}px")
    return "\n".join(lines)


async def record_file(client: LoopClient, path: Path) -> None:
    recorder = client.capture.recorder
    if not isinstance(recorder, FileRecorder):
        raise TypeError("file recording needs a FileRecorder")
    recorder.cue(path)
    client.capture.start()
    await client.capture.stop()


async def handle_command(client: LoopClient, line: str) -> bool:
    """Run one command line. Returns False when the user wants to quit."""
    try:
        parts = shlex.split(line)
    except ValueError as e:
        print(f"   ⚠️  {e}")
        return True
    if not parts:
        return True

    cmd, args = parts[0].lower(), parts[1:]
    session = client.session

    if cmd in ("quit", "exit"):
        return False
    if cmd == "play":
        session.play()
    elif cmd == "pause":
        session.pause()
    elif cmd == "list":
        pass
    elif cmd == "move" and len(args) == 2:
        if not session.move_track(int(args[0]), float(args[1])):
            print(f"   ⚠️  no track #{args[0]}")
    elif cmd == "del" and len(args) == 1:
        if not session.delete_track(int(args[0])):
            print(f"   ⚠️  no track #{args[0]}")
    elif cmd == "bounce" and len(args) == 2:
        if not isinstance(client.engine, MixerEngine):
            print("   ⚠️  bounce needs the software mixer engine")
            return True
        frames = int(float(args[0]) * client.loop.samplerate)
        audio = client.engine.render(frames)
        sf.write(args[1], audio, client.loop.samplerate)
        print(f"   ✓ wrote {args[0]}s to {args[1]}")
    elif Path(line.strip()).is_file():
        await record_file(client, Path(line.strip()))
    else:
        print(f"   ⚠️  unknown command: {line.strip()}")
        return True

    print(format_tracks(client))
    return True


async def receive_clips(client: LoopClient) -> None:
    """Task to apply clips from the relay and show the new timeline."""
    async def on_blob(blob: bytes) -> None:
        track = await client.bridge.on_received(blob)
        if track is not None:
            print(f"\n🎵 new clip from the room ({track.clip.duration_s:.2f}s)")
            print(format_tracks(client))
            print("\n[You] > ", end="", flush=True)

    await client.relay.listen(on_blob)
    print("\n❌ Relay connection closed")


async def read_commands(client: LoopClient) -> None:
    """Task to read user input and apply commands."""
    loop = asyncio.get_running_loop()

    print("\n✅ Connected! Type a file path to share it, or 'quit' to leave.")
    print(format_tracks(client))

    while True:
        print("[You] > ", end="", flush=True)
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        try:
            if not await handle_command(client, line):
                break
        except (ValueError, OSError, RuntimeError) as e:
            print(f"   ⚠️  {e}")

    print("👋 Disconnecting...")


async def main(relay_url: str) -> None:
    print(f"🔌 Connecting to: {relay_url}")
    print("-" * 60)

    client = LoopClient(relay=RelayClient(relay_url), recorder=FileRecorder())
    try:
        await client.relay.connect()
    except RelayConnectionError as e:
        print(f"❌ {e}")
        return

    output = None
    if isinstance(client.engine, MixerEngine):
        output = AudioOutput(client.engine)
        if output.start():
            print("🔊 Audio output on")
        else:
            print("⚠️  No audio output device, playback will be silent")

    receive_task = asyncio.create_task(receive_clips(client))
    command_task = asyncio.create_task(read_commands(client))

    # usually the command task finishes first, when the user quits
    done, pending = await asyncio.wait(
        [receive_task, command_task],
        return_when=asyncio.FIRST_COMPLETED,
    )
    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    client.session.pause()
    if output is not None:
        output.close()
    await client.relay.close()


def run() -> None:
    """Entry point for ``loopjam-client``."""
    parser = argparse.ArgumentParser(description="Join a loopjam relay from the terminal.")
    parser.add_argument("relay_url", nargs="?", default=settings.RELAY_URL)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    relay_url = args.relay_url.rstrip("/")
    if not relay_url.startswith(("ws://", "wss://")):
        print("⚠️  Warning: URL should start with ws:// or wss://")
        print("   Assuming ws:// prefix...")
        relay_url = f"ws://{relay_url}"

    setup_logging(args.log_level)
    try:
        asyncio.run(main(relay_url))
    except KeyboardInterrupt:
        print("\n\n👋 Interrupted by user. Goodbye!")
        sys.exit(0)


if __name__ == "__main__":
    run()
