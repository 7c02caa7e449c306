# securekey/environment.py

import datetime
import socket
from typing import Optional

import psutil


class Environment:
    """Stateless device queries behind the battery, network and clock locks."""

    def battery_percentage(self) -> Optional[float]:
        """Battery charge in percent, or None when the device has no battery."""
        try:
            battery = psutil.sensors_battery()
        except (AttributeError, NotImplementedError):
            return None
        if battery is None:
            return None
        return float(battery.percent)

    def is_network_connected(self) -> bool:
        # Any non-loopback interface that is up and has an address.
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
        for name, st in stats.items():
            if not st.isup or name.startswith("lo"):
                continue
            for addr in addrs.get(name, []):
                if addr.family not in (socket.AF_INET, socket.AF_INET6):
                    continue
                if addr.address and not addr.address.startswith(("127.", "::1", "fe80")):
                    return True
        return False

    def current_hour_of_day(self) -> int:
        return datetime.datetime.now().hour
