"""
Built-in explorer targets.

Selectors and ranges reflect what each explorer rendered when these
definitions were written. Pages change without notice, which is why each
metric carries several strategies.
"""

from __future__ import annotations

from typing import Any, Dict, List

from chainprobe.config.config import TargetConfig

HIRO_SBTC_TOKEN_URL = (
    "https://explorer.hiro.so/token/SM3VDXK3WZZSA84XXFKAFAF15NNZX32CTSG82JFQ4.sbtc-token?chain=mainnet"
)

_GAS_KEYWORD_SELECTORS = [
    '[data-testid*="gas"]',
    '[class*="gas"]',
    '[class*="price"]',
    '[class*="current"]',
    '[class*="latest"]',
    "h1",
    "h2",
    "h3",
    ".stat-value",
    ".metric-value",
]

BUILTIN_TARGETS: List[Dict[str, Any]] = [
    {
        "name": "Rootstock",
        "url": "https://stats.rootstock.io/",
        "description": "Rootstock network stats dashboard",
        "source": "Rootstock Stats",
        "metrics": [
            {
                "name": "blocktime_seconds",
                "raw_field": "blocktime_raw",
                "unit": "seconds",
                "plausible_range": {"min": 0, "max": 600},
                "strategies": [
                    {"kind": "labeled_card", "labels": ["avg block time"]},
                    {"kind": "text_scan", "patterns": [r"avg\.?\s*block\s*time\s*[\d.]+\s*s\w*"]},
                ],
            },
            {
                "name": "avg_gas_price_gwei",
                "raw_field": "avg_gas_price_raw",
                "context_fields": {"wei": "avg_gas_price_wei"},
                "unit": "gwei",
                "plausible_range": {"min": 0, "max": 1000},
                "strategies": [
                    {"kind": "labeled_card", "labels": ["avg gas price"]},
                    {"kind": "table_scan", "labels": ["avg gas price"]},
                ],
            },
        ],
    },
    {
        "name": "Hiro/STX",
        "url": HIRO_SBTC_TOKEN_URL,
        "description": "Hiro explorer, sBTC token page on Stacks mainnet",
        "source": "Hiro Explorer",
        "metrics": [
            {
                "name": "stx_price",
                "unit": "usd",
                "plausible_range": {"min": 0, "max": 10},
                "strategies": [
                    {"kind": "selector_scan", "selectors": [r"text=/\$[\d.]+/"], "text_filter": "unit"},
                    {"kind": "text_scan", "patterns": [r"STX[^\n$]{0,40}\$\s*[\d.,]+"]},
                ],
            },
            {
                "name": "latest_transfer_fee_stx",
                "raw_field": "latest_transfer_fee_raw",
                "unit": "stx",
                "plausible_range": {"min": 0, "max": 2},
                "strategies": [
                    {
                        "kind": "follow_link",
                        "anchor_text": "transfer (sbtc-token)",
                        "link_selector": 'a[href*="0x"]',
                        "depth": 2,
                        "then": [
                            {"kind": "label_proximity", "labels": ["Fee"]},
                            {
                                "kind": "selector_scan",
                                "selectors": ["span", "div", "p"],
                                "text_filter": "unit",
                                "max_text_length": 200,
                                "per_selector_limit": 150,
                                "prefer": "smallest",
                            },
                        ],
                    },
                ],
            },
        ],
    },
    {
        "name": "Core DAO",
        "url": "https://scan.coredao.org/chart/gasprice",
        "description": "Core DAO scan, average gas price chart",
        "source": "Core Scan",
        "metrics": [
            {
                "name": "core_price",
                "unit": "usd",
                "plausible_range": {"min": 0, "max": 1000},
                "strategies": [
                    {"kind": "label_proximity", "labels": ["CORE Price"]},
                ],
            },
            {
                "name": "avg_gas_price_gwei",
                "raw_field": "avg_gas_price_raw",
                "unit": "gwei",
                "plausible_range": {"min": 0, "max": 1000},
                "strategies": [
                    {"kind": "csv_download"},
                    {"kind": "chart_probe"},
                ],
            },
        ],
    },
    {
        "name": "BOB",
        "url": "https://explorer.gobob.xyz/stats/averageGasPrice",
        "description": "BOB explorer, average gas price stats",
        "source": "BOB Explorer",
        "metrics": [
            {
                "name": "avg_gas_price_gwei",
                "raw_field": "avg_gas_price_raw",
                "unit": "gwei",
                "plausible_range": {"min": 0, "max": 100},
                "strategies": [
                    {"kind": "selector_scan", "selectors": _GAS_KEYWORD_SELECTORS},
                    {"kind": "chart_probe"},
                    {"kind": "text_scan", "patterns": [r"Value\s*[\d.]+\s*Gwei"], "keyword": "gwei"},
                    {
                        "kind": "selector_scan",
                        "selectors": ["span", "div", "p", "h1", "h2", "h3"],
                        "max_text_length": 20,
                        "plausible_range": {"min": 0, "max": 50},
                    },
                ],
            },
        ],
    },
]


def builtin_targets() -> List[TargetConfig]:
    return [TargetConfig.model_validate(target) for target in BUILTIN_TARGETS]
