# organ/hub.py
import logging
from typing import Any, Iterator, Tuple

from yoctopuce.yocto_api import YAPI, YRefParam
from yoctopuce.yocto_relay import YRelay

from errors import HardwareDiscoveryError

log = logging.getLogger(__name__)


class RelayHub:
    """
    Yoctopuce hub holding the pipe relays:
    - connect() registers the hub once, no retry
    - endpoints() yields (logical name, YRelay) for every relay found
    - now()/sleep() expose the API clock used to schedule pulses
    """
    def __init__(self, address: str):
        self.address = address
        self.connected = False

    def connect(self):
        errmsg = YRefParam()
        if YAPI.RegisterHub(self.address, errmsg) != YAPI.SUCCESS:
            raise HardwareDiscoveryError(f"Cannot reach hub {self.address}: {errmsg.value}")
        self.connected = True
        log.info("Connected to hub %s", self.address)

    def endpoints(self) -> Iterator[Tuple[str, Any]]:
        relay = YRelay.FirstRelay()
        while relay is not None:
            yield relay.get_logicalName(), relay
            relay = relay.nextRelay()

    def now(self) -> int:
        return YAPI.GetTickCount()

    def sleep(self, ms: int):
        # YAPI.Sleep also pushes queued commands to the hub
        errmsg = YRefParam()
        if YAPI.Sleep(int(ms), errmsg) != YAPI.SUCCESS:
            log.debug("Sleep interrupted: %s", errmsg.value)

    def close(self):
        if self.connected:
            YAPI.FreeAPI()
            self.connected = False
