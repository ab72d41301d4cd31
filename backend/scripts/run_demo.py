"""
End-to-End Demo Flow against a running BurnerPay server

This script runs the complete payer flow over HTTP:
  1. Check server health (chain connectivity)
  2. Bind the main wallet (sweep destination)
  3. Show the burner wallet and wait until it is funded
  4. Start discovery and feed the counterparty as a camera frame
  5. Poll the payment step log until done/error

Usage:
    python scripts/run_demo.py <main_wallet> <merchant_address> [base_url]
"""
import sys
import time

import httpx

if len(sys.argv) < 3:
    print(__doc__)
    sys.exit(1)

MAIN_WALLET = sys.argv[1]
MERCHANT = sys.argv[2]
BASE = sys.argv[3] if len(sys.argv) > 3 else "http://localhost:8000"


def section(title):
    print()
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)


def check(r, expected=200):
    if r.status_code != expected:
        print(f"  FAIL ({r.status_code}): {r.text[:200]}")
        sys.exit(1)
    return r.json()


# ── 1. Health ───────────────────────────────────────────────
section("1. Server health")
h = check(httpx.get(f"{BASE}/health", timeout=10))
print(f"  Chain ID: {h.get('chain_id')} | Block: {h.get('block_number')}")
print(f"  Yield backend: {h.get('yield_backend')}")

# ── 2. Main wallet ──────────────────────────────────────────
section("2. Bind main wallet")
check(httpx.put(f"{BASE}/wallet/main", json={"address": MAIN_WALLET}, timeout=10))
print(f"  Main wallet: {MAIN_WALLET}")

# ── 3. Burner wallet ────────────────────────────────────────
section("3. Burner wallet")
w = check(httpx.get(f"{BASE}/wallet", timeout=10))
print(f"  Burner: {w['address']}")
print(f"  Balance: {w['nativeBalance']:.4f} MON | Yield: {w['yieldBalance']:.4f} MON")
if w["nativeBalance"] <= 0 and w["yieldBalance"] <= 0:
    print("  Fund the burner address from the faucet, then press Enter...")
    input()

# ── 4. Discovery ────────────────────────────────────────────
section("4. Discover merchant (optical)")
check(httpx.post(f"{BASE}/discovery/start", timeout=10))
check(httpx.post(f"{BASE}/discovery/frame", json={"payload": f"ethereum:{MERCHANT}"}, timeout=10), 202)
print(f"  Frame sent: ethereum:{MERCHANT}")

# ── 5. Payment progress ─────────────────────────────────────
section("5. Payment progress")
seen = {}
for i in range(180):
    s = check(httpx.get(f"{BASE}/payment/status", timeout=10))
    for step in s["steps"]:
        line = f"{step['message']} {step.get('detail') or ''}".strip()
        if seen.get(step["phase"]) != line:
            seen[step["phase"]] = line
            print(f"  [{step['phase']:>8}] {line}")
    if s["result"]:
        break
    time.sleep(1)

result = s["result"] or {}
section("Result")
if result.get("success"):
    print(f"  Transfer TX: {result.get('transferTxId')}")
    print(f"  Sweep TX:    {result.get('sweepTxId') or '-'}")
    print(f"  Amount:      {result.get('nativeAmount'):.4f} MON")
else:
    print(f"  FAILED: {result.get('error', 'no result within 180s')}")
    sys.exit(1)
