#!/usr/bin/env python3
"""Demo module for the RouterOS API client."""

import threading

from rosapi import Connection, ConnectionState, Sentence, Server


def run_demo():
    """Run a complete client/server demo."""
    print("RouterOS API Demo - Client-Server Communication")
    print("=" * 40)

    # Start server in background thread
    server = Server("127.0.0.1", 0, users={"admin": "demo"}, identity="demo-router")
    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()
    server.wait_until_listening(5.0)

    replies = []
    conn = Connection(
        ("admin", "demo"),
        on_state_changed=lambda s: print(f"State: {s.name}"),
        on_login_state_changed=lambda s: print(f"Login: {s.name}"),
        on_error=lambda e: print(f"Error: {e}"),
        on_sentence=replies.append,
    )

    try:
        host, port = server.address
        conn.connect(host, port)
        if not conn.run_until(conn.is_logged_in, timeout=5.0):
            print("Login failed")
            return

        # Ask for the router identity
        print("Sending /system/identity/print...")
        tag = conn.send(Sentence(command="/system/identity/print"))
        conn.run_until(lambda: any(r.command == "!done" and r.tag == tag for r in replies), timeout=5.0)
        for reply in replies:
            print(f"Received: {reply.command} {reply.attributes} (tag {reply.tag})")

        # An unknown command comes back as a trap
        print("Sending /nonexistent...")
        replies.clear()
        conn.send(Sentence(command="/nonexistent"))
        if conn.run_until(lambda: replies, timeout=5.0):
            print(f"Received: {replies[0].command} {replies[0].attribute('message')}")
        else:
            print("No reply to /nonexistent")

        conn.close()
        conn.run_until(lambda: conn.state == ConnectionState.UNCONNECTED, timeout=5.0)
        print("Client finished.")

    finally:
        conn.close(force=True)
        server.stop()

    print("\nDemo completed!")


def main():
    """Main entry point for the demo."""
    run_demo()


if __name__ == "__main__":
    main()
