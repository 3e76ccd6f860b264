#!/usr/bin/env python3
"""Example producer that appends messages to a LogQueue queue."""

import sys
import time

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from logqueue.client import LogQueueClient


def main():
    queue = sys.argv[1] if len(sys.argv) > 1 else "example"
    print("Connecting to LogQueue broker...")

    with LogQueueClient() as client:
        print(f"Connected! Putting 10 messages on '{queue}'...")

        for i in range(10):
            message = f"Message {i + 1} at {time.time()}"
            seq = client.put(queue, message.encode("utf-8"))
            print(f"  Stored #{seq}: {message}")

        print("Done!")


if __name__ == "__main__":
    main()
