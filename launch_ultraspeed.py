"""Unified launcher for UltraSpeed processes.

The coordinator (FastAPI) probes the system and owns the device-scan guard;
the dashboard (Flask) polls it and renders the result.

Usage:
    python launch_ultraspeed.py --mode api      # coordinator only
    python launch_ultraspeed.py --mode web      # dashboard only (expects a running coordinator)
    python launch_ultraspeed.py --mode both     # coordinator on 8000, dashboard on 5000
"""
import argparse
import subprocess
import sys
import time

API_PORT = "8000"
WEB_PORT = "5000"


def _api_command(reload: bool = False) -> list:
    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "ultraspeed.api:app",
        "--host",
        "127.0.0.1",
        "--port",
        API_PORT,
    ]
    if reload:
        cmd.append("--reload")
    return cmd


def _web_command() -> list:
    return [
        sys.executable,
        "-m",
        "ultraspeed.cli",
        "web",
        "--api",
        f"http://127.0.0.1:{API_PORT}",
        "--port",
        WEB_PORT,
    ]


def launch_api(reload: bool = False) -> int:
    """Run the coordinator process and return its exit code."""
    print(f"Starting coordinator API on http://127.0.0.1:{API_PORT}")
    return subprocess.run(_api_command(reload), check=False).returncode


def launch_web() -> int:
    """Run the dashboard process and return its exit code."""
    print(f"Starting dashboard on http://127.0.0.1:{WEB_PORT}")
    return subprocess.run(_web_command(), check=False).returncode


def launch_both(reload_api: bool = False) -> None:
    """Launch coordinator and dashboard as separate subprocesses."""
    print("Starting UltraSpeed...")
    print(f"   - Coordinator API: http://127.0.0.1:{API_PORT}")
    print(f"   - Dashboard:       http://127.0.0.1:{WEB_PORT}")
    print("\nPress Ctrl+C to stop both processes\n")

    processes = []
    try:
        processes.append(("Coordinator", subprocess.Popen(_api_command(reload_api))))
        time.sleep(1)
        processes.append(("Dashboard", subprocess.Popen(_web_command())))

        while True:
            time.sleep(0.5)
            for name, proc in processes:
                exit_code = proc.poll()
                if exit_code is not None:
                    print(f"\n{name} exited with code {exit_code}")
                    return
    except KeyboardInterrupt:
        print("\n\nShutting down...")
    finally:
        for name, proc in processes:
            if proc.poll() is None:
                proc.terminate()
                try:
                    proc.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()
        if processes:
            print("Stopped")


def main():
    parser = argparse.ArgumentParser(description="Launch UltraSpeed processes")
    parser.add_argument(
        "--mode",
        choices=["api", "web", "both"],
        default="both",
        help="Which process to launch (default: both)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for the coordinator API",
    )
    args = parser.parse_args()

    if args.mode == "api":
        sys.exit(launch_api(reload=args.reload))
    elif args.mode == "web":
        sys.exit(launch_web())
    else:
        launch_both(reload_api=args.reload)


if __name__ == "__main__":
    main()
