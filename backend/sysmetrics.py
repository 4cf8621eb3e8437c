"""Host metrics sampled from /proc, df, and the gateway status endpoint."""
import asyncio
import logging
import math
import os
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ValidationError

from config import Settings
from degrade import isolate_async

logger = logging.getLogger("mission_control.sysmetrics")

CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")


class CpuSnapshot(BaseModel):
    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @property
    def total(self) -> int:
        return sum(getattr(self, name) for name in CPU_FIELDS)

    @property
    def active(self) -> int:
        return self.total - self.idle - self.iowait


class MemorySnapshot(BaseModel):
    total: int = 0
    free: int = 0
    available: int = 0
    cached: int = 0


class CpuUsage(BaseModel):
    usagePercent: float = 0.0


class MemoryUsage(BaseModel):
    used: int = 0
    total: int = 0
    free: int = 0
    usedPercent: float = 0.0


class DiskUsage(BaseModel):
    filesystem: Optional[str] = None
    size: Optional[str] = None
    used: Optional[str] = None
    available: Optional[str] = None
    usePercent: Optional[str] = None
    mountedOn: Optional[str] = None


class SystemStats(BaseModel):
    cpu: CpuUsage
    memory: MemoryUsage
    disk: DiskUsage
    uptimeSeconds: float = 0.0
    gatewayOnline: bool = False


def round1(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


# ── Parsers ─────────────────────────────────────────────────────
def parse_cpu_snapshot(text: str) -> Optional[CpuSnapshot]:
    for line in text.splitlines():
        if line.startswith("cpu "):
            values = [int(v) for v in line.split()[1:9]]
            values += [0] * (len(CPU_FIELDS) - len(values))
            return CpuSnapshot(**dict(zip(CPU_FIELDS, values)))
    return None


def cpu_usage_percent(start: CpuSnapshot, end: CpuSnapshot) -> float:
    total_delta = end.total - start.total
    if total_delta <= 0:
        return 0.0
    return round1((end.active - start.active) / total_delta * 100)


def parse_meminfo(text: str) -> MemorySnapshot:
    values = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        fields = rest.split()
        if fields and fields[0].isdigit():
            values[key.strip()] = int(fields[0]) * 1024
    return MemorySnapshot(
        total=values.get("MemTotal", 0),
        free=values.get("MemFree", 0),
        available=values.get("MemAvailable", 0),
        cached=values.get("Cached", 0),
    )


def memory_usage(snapshot: MemorySnapshot) -> MemoryUsage:
    used = snapshot.total - snapshot.available
    used_percent = used / snapshot.total * 100 if snapshot.total > 0 else 0.0
    # "free" is reported as the reclaimable-aware available figure
    return MemoryUsage(used=used, total=snapshot.total, free=snapshot.available,
                       usedPercent=round1(used_percent))


def parse_df_output(text: str) -> DiskUsage:
    # Filesystem     1G-blocks  Used Available Use% Mounted on
    # /dev/sda1           100G   20G       80G  20% /
    lines = text.strip().splitlines()
    if len(lines) < 2:
        return DiskUsage()
    parts = lines[1].split()
    if len(parts) < 6:
        return DiskUsage()
    return DiskUsage(
        filesystem=parts[0],
        size=parts[1].replace("G", ""),
        used=parts[2].replace("G", ""),
        available=parts[3].replace("G", ""),
        usePercent=parts[4].replace("%", ""),
        mountedOn=" ".join(parts[5:]),
    )


def parse_uptime(text: str) -> float:
    return float(text.split()[0])


# ── Samplers ────────────────────────────────────────────────────
def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


async def _read_proc(proc_root: str, name: str) -> str:
    return await asyncio.to_thread(_read_text, os.path.join(proc_root, name))


async def sample_cpu(proc_root: str = "/proc", interval: float = 0.1) -> CpuUsage:
    start = parse_cpu_snapshot(await _read_proc(proc_root, "stat"))
    if start is None:
        return CpuUsage()
    await asyncio.sleep(interval)
    end = parse_cpu_snapshot(await _read_proc(proc_root, "stat"))
    if end is None:
        return CpuUsage()
    return CpuUsage(usagePercent=cpu_usage_percent(start, end))


async def read_memory(proc_root: str = "/proc") -> MemoryUsage:
    return memory_usage(parse_meminfo(await _read_proc(proc_root, "meminfo")))


async def read_uptime(proc_root: str = "/proc") -> float:
    return parse_uptime(await _read_proc(proc_root, "uptime"))


async def read_disk(mount: str = "/") -> DiskUsage:
    proc = await asyncio.create_subprocess_exec(
        "df", "-BG", mount,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    if proc.returncode != 0:
        logger.warning("df exited with %s", proc.returncode)
        return DiskUsage()
    return parse_df_output(stdout.decode("utf-8", errors="replace"))


async def check_gateway(url: str, timeout: float = 1.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
    """True if the gateway answered with any 2xx within the timeout.

    The timeout bounds the whole exchange, not each connect/read phase.
    """
    async def _get() -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            return await client.get(url)

    try:
        resp = await asyncio.wait_for(_get(), timeout)
        return resp.is_success
    except (httpx.HTTPError, asyncio.TimeoutError) as exc:
        logger.debug("gateway check %s failed: %r", url, exc)
        return False


async def collect_system_stats(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> SystemStats:
    """Gather all measurements concurrently; each one degrades on its own."""
    cpu, memory, disk, uptime, online = await asyncio.gather(
        isolate_async(sample_cpu(settings.proc_root, settings.cpu_sample_interval), CpuUsage, "cpu usage"),
        isolate_async(read_memory(settings.proc_root), MemoryUsage, "memory usage"),
        isolate_async(read_disk("/"), DiskUsage, "disk usage"),
        isolate_async(read_uptime(settings.proc_root), float, "uptime"),
        isolate_async(
            check_gateway(settings.gateway_status_url, settings.gateway_check_timeout, transport),
            bool, "gateway check",
        ),
    )
    return SystemStats(cpu=cpu, memory=memory, disk=disk, uptimeSeconds=uptime, gatewayOnline=online)


def _object(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"remote stats {what} is not an object")
    return value


def _number(value: Any, what: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"remote stats {what} is not a number")
    return float(value)


async def fetch_remote_stats(url: str, api_key: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> SystemStats:
    """Fetch stats pre-computed by another host and reshape them.

    The remote reports ``cpu`` as a bare percentage, disk totals in bytes
    and ``uptime`` in seconds. Raises httpx errors to the caller, and
    ValueError when the payload does not have that shape.
    """
    headers = {"x-api-key": api_key} if api_key else {}
    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        resp = await client.get(url, headers=headers)
    resp.raise_for_status()
    data = _object(resp.json(), "payload")
    disk = _object(data.get("disk"), "disk")
    gib = 1024 ** 3
    try:
        memory = MemoryUsage(**_object(data.get("memory"), "memory"))
    except ValidationError as exc:
        raise ValueError(f"remote stats memory is malformed: {exc}") from exc
    return SystemStats(
        cpu=CpuUsage(usagePercent=_number(data.get("cpu"), "cpu")),
        memory=memory,
        disk=DiskUsage(
            size=f"{_number(disk.get('total'), 'disk.total') / gib:.0f}",
            used=f"{_number(disk.get('used'), 'disk.used') / gib:.0f}",
        ),
        uptimeSeconds=_number(data.get("uptime"), "uptime"),
        gatewayOnline=True,
    )
