"""pinch-engine CLI for desktop development.

Usage:
    pinch-engine run       Live webcam hand tracking + microphone
    pinch-engine record    Record hand samples from the webcam
    pinch-engine replay    Replay a recorded hand session through the pipeline
    pinch-engine devices   List audio input devices
    pinch-engine config    Write the default configuration file
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")

from pinch_engine.config import EngineConfig, load_config, save_config
from pinch_engine.events import PinchKind

app = typer.Typer(
    name="pinch-engine",
    help="🤏 Pinch-to-record gesture pipeline.",
    add_completion=False,
)

_state = {"config": None}


@app.callback()
def main_options(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    log_level: Optional[str] = typer.Option(None, help="Log level (overrides config)"),
):
    """Load configuration and set up logging."""
    try:
        cfg = load_config(config)
    except (OSError, ValueError) as e:
        typer.echo(f"❌ Invalid config: {e}", err=True)
        raise typer.Exit(1)
    logging.basicConfig(
        level=(log_level or cfg.log_level).upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    _state["config"] = cfg


def _config() -> EngineConfig:
    return _state["config"] or EngineConfig()


def _print_event(event):
    extra = f" ({event.duration:.2f}s)" if event.duration is not None else ""
    typer.echo(f"   🤏 {event.hand.label} {event.kind.value}{extra}")


@app.command()
def run(
    fps: float = typer.Option(30.0, help="Tick rate"),
    camera: Optional[int] = typer.Option(None, help="Camera device index (overrides config)"),
):
    """Run the pipeline live: webcam hands, real microphone, clips to disk."""
    from pinch_engine.audio import SoundDeviceAudio
    from pinch_engine.hands import MediaPipeHandSource
    from pinch_engine.pipeline import PinchPipeline

    cfg = _config()
    source = MediaPipeHandSource(camera_index=camera if camera is not None else cfg.camera_index)
    device = SoundDeviceAudio(device=cfg.audio_device, sample_rate=cfg.sample_rate)
    pipeline = PinchPipeline(
        device=device, source=source, config=cfg, frame_budget_ms=1000.0 / fps,
    )

    typer.echo("🚀 Pinch with your right hand to record. Ctrl+C to quit.")
    interval = 1.0 / fps
    was_recording = False
    try:
        while True:
            t0 = time.monotonic()
            result = pipeline.tick(timestamp=t0)
            for event in result.events:
                if event.kind is not PinchKind.HOLD:
                    _print_event(event)
            if result.status.is_recording:
                typer.echo(
                    f"\r   🔴 {result.status.elapsed:5.1f}s  level {result.intensity:.3f}",
                    nl=False,
                )
            elif was_recording:
                typer.echo(f"\n   💾 {result.status.last_recorded_audio_path or 'no clip'}")
            was_recording = result.status.is_recording
            spare = interval - (time.monotonic() - t0)
            if spare > 0:
                time.sleep(spare)
    except KeyboardInterrupt:
        pass
    finally:
        pipeline.close()
        source.close()

    stats = pipeline.stats
    typer.echo(f"\n✅ {stats.total_ticks} ticks, {stats.sessions_completed} recording(s)")
    if stats.over_budget_ticks:
        typer.echo(f"   ⚠️  {stats.over_budget_ticks} tick(s) ran over the {1000.0 / fps:.1f}ms frame budget")


@app.command()
def record(
    output: str = typer.Option("hands.json", "-o", help="Output file path"),
    duration: float = typer.Option(0, help="Recording duration in seconds (0 = until Ctrl+C)"),
    fps: float = typer.Option(30.0, help="Tick rate"),
):
    """Record hand samples from the webcam for later replay."""
    from pinch_engine.hands import MediaPipeHandSource
    from pinch_engine.recorder import HandRecorder

    cfg = _config()
    source = MediaPipeHandSource(camera_index=cfg.camera_index)
    recorder = HandRecorder()

    typer.echo(f"🎬 Recording hands to {output} (Ctrl+C to stop)")
    start = time.monotonic()
    recorder.start(start)
    try:
        while True:
            now = time.monotonic()
            recorder.add_tick(source.poll(), now)
            if recorder.tick_count % 30 == 0:
                typer.echo(f"\r   Ticks: {recorder.tick_count} | {now - start:.1f}s", nl=False)
            if duration > 0 and now - start >= duration:
                break
            time.sleep(max(0.0, 1.0 / fps - (time.monotonic() - now)))
    except KeyboardInterrupt:
        pass
    finally:
        recorder.stop()
        source.close()

    recorder.save(output)
    typer.echo(f"\n📼 Recorded {recorder.tick_count} ticks ({recorder.duration:.1f}s) to {output}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to a hand session JSON file"),
    speed: float = typer.Option(1.0, help="Playback speed multiplier"),
    realtime: bool = typer.Option(False, help="Play at original timing"),
    clips_dir: Optional[str] = typer.Option(None, help="Save clips here instead of keeping them in memory"),
):
    """Replay a hand session through the pipeline with a simulated microphone."""
    from pinch_engine.audio import SimulatedAudio
    from pinch_engine.pipeline import PinchPipeline
    from pinch_engine.recorder import HandPlayer
    from pinch_engine.storage import MemoryClipStore, NpzClipStore

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    try:
        player = HandPlayer.load(path)
    except (ValueError, KeyError) as e:
        typer.echo(f"❌ Could not read {recording}: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"▶️  Replaying {path.name} ({player.tick_count} ticks, {player.duration:.1f}s)")
    store = NpzClipStore(clips_dir) if clips_dir else MemoryClipStore()
    pipeline = PinchPipeline(device=SimulatedAudio(), store=store, config=_config())

    ticks = player.play_realtime(speed=speed) if realtime else player.play()
    last_ts = 0.0
    for tick in ticks:
        result = pipeline.tick(tick.hands, timestamp=tick.timestamp)
        for event in result.events:
            if event.kind is not PinchKind.HOLD:
                _print_event(event)
        last_ts = tick.timestamp
    pipeline.close(last_ts)

    stats = pipeline.stats
    status = pipeline.workflow.status(last_ts)
    typer.echo(f"\n✅ Replay complete. {stats.total_events} events, {stats.sessions_completed} recording(s).")
    typer.echo(f"   Last clip: {status.last_recorded_audio_path or 'none'}")


@app.command()
def devices():
    """List audio input devices."""
    from pinch_engine.audio import SoundDeviceAudio

    names = SoundDeviceAudio().list_devices()
    if not names:
        typer.echo("⚠️  No input devices found", err=True)
        raise typer.Exit(1)
    for i, name in enumerate(names):
        typer.echo(f"   [{i}] {name}")


@app.command("config")
def write_config(
    output: str = typer.Argument("pinch_engine.yml", help="Where to write the config"),
):
    """Write the active configuration to a YAML file."""
    save_config(_config(), output)
    typer.echo(f"💾 Saved config to {output}")


def main():
    app()


if __name__ == "__main__":
    main()
