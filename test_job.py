#!/usr/bin/env python3
"""
Smoke test script for the Storyreel video worker.

Submits a story job against a running worker, polls until it finishes, downloads
the rendered MP4 and summarizes the job log.

Usage:
    python test_job.py                               # Default story, random background
    python test_job.py --category minecraft --voice brian
    python test_job.py --story-file story.txt --title "AITA for ..."
    python test_job.py --allow-degraded              # Accept background + audio only output
    python test_job.py --analyze-only <job_id>       # Only summarize an existing job log
"""

import argparse
import os
import time
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Configuration
BASE_URL = os.getenv("STORYREEL_URL", "http://localhost:8000")

DEFAULT_TITLE = "AITA for refusing to share my fries with my coworker?"
DEFAULT_STORY = (
    "So this happened yesterday at lunch. My coworker keeps taking food off my plate "
    "without asking, and this time I finally said no. Now the whole office is split. "
    "[BREAK] Update coming tomorrow."
)

# Output directory
OUTPUT_DIR = Path("test_videos")
LOGS_DIR = Path(os.getenv("LOGS_DIRECTORY", "logs"))


def submit_job(title: str, story_text: str, category: str, voice: str = None,
               subreddit: str = None, author: str = None, allow_degraded: bool = False):
    """Submit a story job; returns the job id or None."""
    payload = {
        "title": title,
        "storyText": story_text,
        "backgroundCategory": category,
        "subredditLabel": subreddit,
        "authorLabel": author,
    }
    if voice:
        payload["voiceId"] = voice
    if allow_degraded:
        payload["allowDegradedRender"] = True

    print("\n🚀 Submitting story job")
    print(f"   Title: {title}")
    print(f"   Story: {len(story_text)} chars")
    print(f"   Background: {category}")
    print(f"   Voice: {voice or 'default'}")

    response = requests.post(f"{BASE_URL}/api/generate-video", json=payload)

    if response.status_code != 202:
        print(f"❌ Failed to submit job: {response.status_code}")
        print(response.text)
        return None

    job_id = response.json()["job_id"]
    print(f"✅ Job submitted: {job_id}")
    return job_id


def poll_job_status(job_id: str, poll_interval: int = 2):
    """Poll job status until it completes or fails."""
    print(f"\n⏳ Waiting for job {job_id}...")

    start_time = time.time()
    last_message = ""

    while True:
        response = requests.get(f"{BASE_URL}/api/video-status/{job_id}")

        if response.status_code != 200:
            print(f"❌ Failed to get job status: {response.status_code}")
            return None

        status = response.json()
        message = status.get("message", "")

        if message != last_message:
            elapsed = time.time() - start_time
            print(f"   [{status.get('progress_percent', 0):5.1f}%] [{elapsed:6.1f}s] {status['status']}: {message}")
            last_message = message

        if status["status"] == "completed":
            print(f"\n✅ Job completed in {time.time() - start_time:.1f}s")
            return status
        if status["status"] == "failed":
            print(f"\n❌ Job failed: {status.get('error')}")
            return None

        time.sleep(poll_interval)


def download_video(output_url: str) -> Path:
    """Download the finished video into OUTPUT_DIR."""
    OUTPUT_DIR.mkdir(exist_ok=True)
    target = OUTPUT_DIR / os.path.basename(output_url)

    with requests.get(f"{BASE_URL}{output_url}", stream=True) as response:
        response.raise_for_status()
        with open(target, "wb") as f:
            for chunk in response.iter_content(chunk_size=1024 * 1024):
                f.write(chunk)

    print(f"📥 Downloaded {target} ({target.stat().st_size / 1024 / 1024:.1f} MB)")
    return target


def analyze_job_log(job_id: str):
    """Print warnings, errors and the key timing lines from the job's log file."""
    log_files = sorted(LOGS_DIR.glob(f"job_{job_id}_*.log"))
    if not log_files:
        print(f"⚠️  No log file found for job {job_id} in {LOGS_DIR}/")
        return

    log_file = log_files[-1]
    print(f"📄 Job log: {log_file}")

    markers = ("Durations:", "Resolving background", "Aligned", "Generated ASS captions", "Rendering", "Render complete")
    with open(log_file, encoding="utf-8") as f:
        for line in f:
            line = line.rstrip()
            if " - WARNING - " in line or " - ERROR - " in line or any(m in line for m in markers):
                print(f"   {line}")


def main():
    parser = argparse.ArgumentParser(description="Smoke test the Storyreel video API")
    parser.add_argument("--title", type=str, default=DEFAULT_TITLE, help="Banner title (narrated first)")
    parser.add_argument("--story-file", type=str, default=None, help="Read story text from a file")
    parser.add_argument("--category", type=str, default="random", help="minecraft, subway, cooking, workers, asmr, random")
    parser.add_argument("--voice", type=str, default=None, help="Voice alias or raw ElevenLabs voice id")
    parser.add_argument("--subreddit", type=str, default="AmItheAsshole", help="Subreddit label on the banner")
    parser.add_argument("--author", type=str, default="throwaway123", help="Author label on the banner")
    parser.add_argument("--allow-degraded", action="store_true", help="Retry with background + audio only on render failure")
    parser.add_argument("--analyze-only", type=str, help="Only analyze log for given job ID")

    args = parser.parse_args()

    if args.analyze_only:
        analyze_job_log(args.analyze_only)
        return

    story_text = Path(args.story_file).read_text(encoding="utf-8") if args.story_file else DEFAULT_STORY

    job_id = submit_job(
        title=args.title,
        story_text=story_text,
        category=args.category,
        voice=args.voice,
        subreddit=args.subreddit,
        author=args.author,
        allow_degraded=args.allow_degraded,
    )
    if not job_id:
        return

    status = poll_job_status(job_id)

    print("\n" + "=" * 60)
    analyze_job_log(job_id)

    if not status:
        print("\n⚠️  Job failed - check logs for details")
        return

    download_video(status["output_url"])
    if "degraded" in status.get("message", ""):
        print("⚠️  Output was rendered in degraded mode (no banner or captions)")


if __name__ == "__main__":
    main()
