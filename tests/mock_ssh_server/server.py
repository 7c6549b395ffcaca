"""Mock SSH server that answers exec requests with canned output."""

import asyncio

import asyncssh

USERNAME = "deploy"
PASSWORD = "deploy123"

# command prefix -> (stdout, stderr, exit status)
CANNED = {
    "echo hello": ("hello\n", "", 0),
    "top -bn1": ("7.5\n", "", 0),
    "free -b": ("1024 4096 25.0", "", 0),
    "df -B1": ("100 400 25.0", "", 0),
    "cat /proc/uptime": ("120.4\n", "", 0),
    "cat /proc/loadavg": ("0.01 0.05 0.10\n", "", 0),
    "tail -n": ("Jan 1 00:00:00 mock kernel: ready\n", "", 0),
    "exit 3": ("", "failing on purpose\n", 3),
}


def respond(command: str) -> tuple[str, str, int]:
    """Canned reply for an exec request."""
    for prefix, reply in CANNED.items():
        if command.startswith(prefix):
            return reply
    return "", f"mock: unknown command: {command}\n", 127


class MockSSHServer(asyncssh.SSHServer):
    """Mock SSH server accepting one password."""

    def begin_auth(self, username):
        """Begin authentication."""
        return True

    def password_auth_supported(self):
        """Password authentication is supported."""
        return True

    def validate_password(self, username, password):
        """Validate password."""
        return username == USERNAME and password == PASSWORD


async def handle_process(process: asyncssh.SSHServerProcess) -> None:
    stdout, stderr, status = respond(process.command or "")
    process.stdout.write(stdout)
    process.stderr.write(stderr)
    process.exit(status)


async def start_server(host="127.0.0.1", port=0, host_key=None):
    """Start the mock server; returns the acceptor (use get_port())."""
    return await asyncssh.listen(
        host,
        port,
        server_factory=MockSSHServer,
        server_host_keys=[host_key or asyncssh.generate_private_key("ssh-ed25519")],
        process_factory=handle_process,
    )


async def serve_forever(host="0.0.0.0", port=2222):
    server = await start_server(host, port)
    print(f"Mock SSH server started on {host}:{server.get_port()}")
    await server.wait_closed()


if __name__ == "__main__":
    try:
        asyncio.run(serve_forever())
    except KeyboardInterrupt:
        print("\nShutting down...")
