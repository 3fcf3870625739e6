import logging

import usb.core

from .errors import FlashFailed
from .models import ProbeConfig


def find_usb_device(vendor_id, product_id=None):
    # Any product id matches when none is given
    try:
        devices = usb.core.find(find_all=True)
    except usb.core.NoBackendError:
        raise FlashFailed("No USB backend available to look for the debug probe")
    for dev in devices:
        if dev.idVendor == vendor_id and (product_id is None or dev.idProduct == product_id):
            return dev
    return None


def ensure_probe(probe: ProbeConfig, logger: logging.Logger = None):
    """Fail before flashing if the debug probe is not on the USB bus."""
    logger = logger or logging.getLogger("Probe")
    if not probe.check_usb:
        return None

    dev = find_usb_device(probe.vendor_id, probe.product_id)
    if dev is None:
        wanted = f"{probe.vendor_id:04x}:" + (
            f"{probe.product_id:04x}" if probe.product_id is not None else "*"
        )
        raise FlashFailed(f"Debug probe {wanted} not found on USB; check the cable")

    logger.info(f"Debug probe found: {dev.idVendor:04x}:{dev.idProduct:04x}")
    return dev
