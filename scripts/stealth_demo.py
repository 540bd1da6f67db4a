#!/usr/bin/env python3
"""
StealthChat - Stealth Messaging Demo
======================================
Demo script: Alice scrive a Bob tramite stealth address, Carol osserva
lo stesso channel pubblico.

Usage:
    python scripts/stealth_demo.py
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stealth_chat.config import override_settings
from stealth_chat.crypto.curve import derive_address, scalar_base_multiply
from stealth_chat.logging_setup import configure_logging
from stealth_chat.registry import (
    AnnouncementRegistryClient,
    InMemoryAnnouncementChannel,
    InMemoryKeyRegistry,
    LocalSigner,
)
from stealth_chat.services import StealthService
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def main():
    """Run stealth messaging demo"""

    console.print(Panel.fit(
        "[cyan]StealthChat - Stealth Messaging Demo[/cyan]\n\n"
        "One-time addresses for unlinkable chat delivery",
        border_style="cyan"
    ))

    settings = override_settings(scanner_background=False, log_level="WARNING")
    configure_logging(settings)

    channel = InMemoryAnnouncementChannel()
    client = AnnouncementRegistryClient(channel, InMemoryKeyRegistry(), settings=settings)

    alice = StealthService(LocalSigner(), client, settings=settings)
    bob = StealthService(LocalSigner(), client, settings=settings)
    carol = StealthService(LocalSigner(), client, settings=settings)

    # ========================================================================
    # STEP 1: Recipients register their meta-address
    # ========================================================================

    console.print("\n[yellow]Step 1: Bob and Carol derive keys and register[/yellow]")

    table = Table(title="Registered Meta-Addresses")
    table.add_column("User", style="cyan")
    table.add_column("Wallet", style="green")
    table.add_column("Meta-Address", style="green")

    for name, service in (("Bob", bob), ("Carol", carol)):
        service.register_keys()
        service.start_watching()
        table.add_row(name, service.signer.address, service.meta_address[:28] + "...")

    console.print(table)
    console.print("[dim]Keys are re-derived from a wallet signature, never stored[/dim]")

    # ========================================================================
    # STEP 2: Alice sends
    # ========================================================================

    console.print("\n[yellow]Step 2: Alice sends two messages to Bob and one to Carol[/yellow]")

    sent = [
        alice.send_to_identity(bob.signer.address, metadata=b"hi bob"),
        alice.send_to_identity(bob.signer.address, metadata=b"still there?"),
        alice.send_to_identity(carol.signer.address, metadata=b"hi carol"),
    ]

    for item in sent:
        console.print(f"[cyan]One-time address: {item.stealth_address} (view tag {item.view_tag})[/cyan]")

    console.print("[dim]Two messages to Bob, two unrelated addresses[/dim]")

    # ========================================================================
    # STEP 3: Recipients scan
    # ========================================================================

    console.print("\n[yellow]Step 3: Watchers scan the public channel[/yellow]")

    table = Table(title="Scan Results")
    table.add_column("User", style="cyan")
    table.add_column("Scanned", style="green")
    table.add_column("View Tag Hits", style="green")
    table.add_column("Received", style="green")

    for name, service in (("Bob", bob), ("Carol", carol)):
        stats = service.watcher.stats
        table.add_row(name, str(stats.scanned), str(stats.view_tag_matches), str(len(service.announcements)))

    console.print(table)

    # ========================================================================
    # STEP 4: Bob recovers the spend key
    # ========================================================================

    console.print("\n[yellow]Step 4: Bob derives the private key of his first address[/yellow]")

    announcement = bob.announcements[0]
    stealth_private = bob.recover_private_key(announcement)
    recovered = derive_address(scalar_base_multiply(stealth_private))

    if recovered == announcement.stealth_address:
        console.print(f"[green]✅ Key controls {recovered}[/green]")
    else:
        console.print("[red]❌ Recovered key does not match[/red]")

    # ========================================================================
    # Summary
    # ========================================================================

    for service in (alice, bob, carol):
        service.close()

    console.print("\n" + "=" * 60)
    console.print("[green]Stealth Messaging Demo Complete![/green]")
    console.print(f"\n[cyan]Public announcements: {len(channel)}[/cyan]")
    console.print("• Observers see addresses that never repeat")
    console.print("• Only the recipient links an announcement to itself")


if __name__ == "__main__":
    main()
