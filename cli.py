"""
Command-line interface for RetroForge core: collect, run (tick loop), speedtest, stress.
"""
from __future__ import annotations

import argparse
import json
import sys
import time


def cmd_collect(args: argparse.Namespace) -> int:
    from metrics import collect
    if args.json:
        out = collect(full=args.full)
        print(json.dumps(out, indent=2 if args.pretty else None))
        return 0
    from metrics import main as metrics_main
    metrics_main()
    return 0


# rich has no amber
_RICH_STYLES = {"amber": "yellow"}


def _status_table(engine):
    from rich.table import Table
    from utils import format_percent, format_rate_kbps, format_uptime

    table = Table(title=f"RetroForge [{engine.data_source.value}]")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("CPU", format_percent(engine.cpu))
    table.add_row("RAM", format_percent(engine.ram))
    table.add_row("Disk", format_percent(engine.disk))
    table.add_row("Net down / up", f"{format_rate_kbps(engine.net_down)} / {format_rate_kbps(engine.net_up)}")
    table.add_row("Processes", str(engine.process_count))
    table.add_row("Uptime", format_uptime(engine.uptime_sec))
    anomaly = engine.anomaly
    table.add_row("Anomaly", f"[red]{anomaly.reason}[/red]" if anomaly.triggered else anomaly.reason)
    if engine.stress_state.value != "idle":
        table.add_row("Stress", f"{engine.stress_state.value} {engine.stress_progress * 100:.0f}%")
    return table


def cmd_run(args: argparse.Namespace) -> int:
    from rich.console import Console
    from engine import StatsEngine
    from models import DataSource

    console = Console()
    frame = 1.0 / max(1, args.fps)
    with StatsEngine() as engine:
        if args.real:
            engine.set_data_source(DataSource.REAL)
        started = last = time.monotonic()
        next_print = started
        try:
            while args.duration <= 0 or last - started < args.duration:
                time.sleep(frame)
                now = time.monotonic()
                engine.tick(now - last)
                last = now
                if now >= next_print:
                    next_print = now + 1.0
                    console.print(_status_table(engine))
        except KeyboardInterrupt:
            pass
        for entry in engine.log_entries():
            console.print(entry.message, style=_RICH_STYLES.get(entry.color_tag, entry.color_tag))
    return 0


def cmd_speedtest(args: argparse.Namespace) -> int:
    from rich.console import Console
    from config import settings_from_config
    from models import SpeedTestState
    from speedtest import SpeedTestWorker

    console = Console()
    worker = SpeedTestWorker(settings_from_config())
    worker.start()
    with console.status("Running speed test...") as status:
        while worker.state == SpeedTestState.RUNNING:
            status.update(f"Running speed test... {worker.progress * 100:.0f}%")
            time.sleep(0.1)
    worker.join()
    if worker.state != SpeedTestState.DONE or worker.result is None:
        console.print(f"[red]Speed test failed: {worker.error}[/red]")
        return 1
    r = worker.result
    console.print(
        f"Download [green]{r.download_mbps:.1f} Mbps[/green]  Upload ~{r.upload_mbps:.1f} Mbps  "
        f"Ping {r.ping_ms:.0f} ms  ({r.server}, {r.timestamp})"
    )
    if args.save:
        path = worker.save()
        console.print(f"Saved to {path}")
    return 0


def cmd_stress(args: argparse.Namespace) -> int:
    from rich.console import Console
    from rich.progress import Progress
    from config import settings_from_config
    from models import StressTestState
    from stress import StressTestCoordinator
    from utils import RetroForgeError

    console = Console()
    try:
        coordinator = StressTestCoordinator(settings_from_config())
        duration = args.duration or coordinator.settings.stress_default_duration_sec
        started = coordinator.start(duration)
    except RetroForgeError as e:
        console.print(f"[red]Stress test failed: {e}[/red]")
        return 1
    if not started:
        console.print("[red]Stress test failed: could not launch workers[/red]")
        return 1
    console.print(f"Stressing {coordinator.run.workers} cores for {duration}s (Ctrl+C to stop)")
    try:
        with Progress(console=console) as progress:
            bar = progress.add_task("stress", total=1.0)
            while coordinator.state == StressTestState.RUNNING:
                progress.update(bar, completed=coordinator.progress)
                time.sleep(0.1)
            progress.update(bar, completed=1.0)
    except KeyboardInterrupt:
        coordinator.stop(wait=True)
    coordinator.join()
    return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
    from config import get, load_config_file
    loaded = load_config_file(args.config) if args.config else load_config_file()
    print("Config file loaded:", loaded)
    for key in [
        "engine.smoothing_rate_real",
        "engine.info_refresh_sec",
        "anomaly.cpu_percent",
        "anomaly.ram_percent",
        "speedtest.base_url",
        "stress.default_duration_sec",
        "persistence.speedtest_path",
    ]:
        print(f"  {key}: {get(key)}")
    return 0


def main() -> int:
    from config import get, load_config_file
    from utils import setup_logging

    load_config_file()

    parser = argparse.ArgumentParser(prog="retroforge", description="RetroForge telemetry core CLI")
    parser.add_argument("--log-level", default=None, help="Logging level (default from config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_collect = sub.add_parser("collect", help="Collect metrics once (rich output) or --json")
    p_collect.add_argument("--json", action="store_true", help="Output JSON")
    p_collect.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    p_collect.add_argument("--full", action="store_true", help="Include volumes, adapters, hardware")
    p_collect.set_defaults(run=cmd_collect)

    p_run = sub.add_parser("run", help="Drive the smoothing engine and print status")
    p_run.add_argument("--real", action="store_true", help="Use real data instead of simulated")
    p_run.add_argument("--fps", type=int, default=30, help="Ticks per second")
    p_run.add_argument("--duration", type=float, default=0.0, help="Stop after N seconds (0 = until Ctrl+C)")
    p_run.set_defaults(run=cmd_run)

    p_speed = sub.add_parser("speedtest", help="Run a download speed test")
    p_speed.add_argument("--save", action="store_true", help="Append the result to the results file")
    p_speed.set_defaults(run=cmd_speedtest)

    p_stress = sub.add_parser("stress", help="Run a CPU stress test on every core")
    p_stress.add_argument("--duration", type=int, default=None, help="Seconds")
    p_stress.set_defaults(run=cmd_stress)

    p_validate = sub.add_parser("validate-config", help="Validate and show config")
    p_validate.add_argument("--config", default=None, help="Path to a YAML config file")
    p_validate.set_defaults(run=cmd_validate_config)

    args = parser.parse_args()
    setup_logging(args.log_level or get("logging.level", "INFO"), log_file=get("logging.file"))
    return args.run(args)


if __name__ == "__main__":
    sys.exit(main())
