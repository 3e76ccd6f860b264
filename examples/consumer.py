#!/usr/bin/env python3
"""Example consumer that reads messages from a LogQueue queue in order."""

import sys
import time
import argparse

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from logqueue.client import LogQueueClient, QueueNotFoundError


def main():
    parser = argparse.ArgumentParser(description="Read messages from LogQueue")
    parser.add_argument("queue", nargs="?", default="example", help="Queue name (default: example)")
    parser.add_argument(
        "--start",
        type=int,
        default=1,
        help="Sequence number to start from (default: 1)",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        help="Keep polling for new messages",
    )
    args = parser.parse_args()

    print(f"Connecting to LogQueue broker, reading '{args.queue}' from #{args.start}...")

    with LogQueueClient() as client:
        seq = args.start
        while True:
            try:
                message = client.get(args.queue, seq)
            except QueueNotFoundError:
                message = None
            if message is None:
                if args.poll:
                    time.sleep(1)
                    continue
                print("No more messages available.")
                break
            print(f"  #{seq}: {message.decode('utf-8', errors='replace')}")
            seq += 1

        print(f"Done! Read {seq - args.start} messages.")


if __name__ == "__main__":
    main()
