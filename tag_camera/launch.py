"""Start one tag node process per camera.

A pipeline instance serves a single stream, so every camera gets its own
process (and its own detector); the processes share nothing at runtime.
"""

import argparse
import signal
import subprocess
import sys
import time
from pathlib import Path


def build_commands(configs: list[str], passthrough: list[str]) -> list[list[str]]:
    cmds = []
    for cfg in configs:
        if not Path(cfg).exists():
            raise FileNotFoundError(f"Config not found: {cfg}")
        cmds.append([sys.executable, "-m", "tag_camera.run", "--config", cfg, *passthrough])
    return cmds


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Launch one tag node per camera config",
        epilog="Example: python -m tag_camera.launch configs/front.yaml configs/rear.yaml -- --dry-run",
    )
    ap.add_argument("configs", nargs="+", help="List of config files (e.g., front.yaml rear.yaml)")
    ap.add_argument("--delay", type=float, default=0.0, help="Delay between spawns (sec)")

    argv = sys.argv[1:]
    passthrough: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, passthrough = argv[:split], argv[split + 1:]
    args = ap.parse_args(argv)

    cmds = build_commands(args.configs, passthrough)
    procs: list[subprocess.Popen] = []

    def _terminate_all():
        for p in procs:
            if p.poll() is None:
                p.terminate()

    def _handle_signal(_sig, _frame):
        print("\n[launch] Received stop signal, terminating all nodes...")
        _terminate_all()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    for i, cmd in enumerate(cmds, 1):
        print(f"[launch] Starting node {i}/{len(cmds)}: {Path(cmd[4]).name}")
        procs.append(subprocess.Popen(cmd))
        if args.delay > 0:
            time.sleep(args.delay)

    print(f"[launch] All {len(procs)} node(s) started. Press Ctrl+C to stop.")

    try:
        exit_codes = [p.wait() for p in procs]
        max_code = max(exit_codes) if exit_codes else 0
        if max_code != 0:
            print(f"[launch] One or more nodes exited with error code {max_code}")
        return max_code
    except KeyboardInterrupt:
        _terminate_all()
        return 130


if __name__ == "__main__":
    sys.exit(main())
