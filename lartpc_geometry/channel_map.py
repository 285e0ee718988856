# lartpc_geometry/channel_map.py
import logging

from .exceptions import NoSuchElement, NoSensitiveTable, ChannelOutOfRange
from .spatial_locator import nearest_element, nearest_sensitive_element

logger = logging.getLogger(__name__)


class AuxDetChannelMapAlg:
    """
    Maps auxiliary detector names and read-out channels to element indices.

    The lookup tables are populated by a derived class in `initialize()`:

    - `ad_geo_to_name`: AuxDet index -> name
    - `ad_geo_to_channel_and_sv`: AuxDet index -> list indexed by channel of
      (channel, sensitive volume index) pairs
    """

    def __init__(self):
        self.ad_geo_to_name = {}
        self.ad_geo_to_channel_and_sv = {}

    def initialize(self, aux_dets):
        raise NotImplementedError("The channel tables must be populated by a derived class")

    def uninitialize(self):
        self.ad_geo_to_name.clear()
        self.ad_geo_to_channel_and_sv.clear()

    # --- Geometry queries, delegated to the locator ---
    def nearest_element(self, point, aux_dets, wiggle=1.0, tolerance=0.0):
        """Index of the first AuxDet containing the point."""
        return nearest_element(aux_dets, point, wiggle, tolerance, kind="AuxDet")

    def nearest_sensitive_element(self, point, aux_dets, wiggle=1.0, tolerance=0.0):
        """(AuxDet index, sensitive volume index) of the first volumes containing the point."""
        return nearest_sensitive_element(aux_dets, point, wiggle, tolerance)

    # --- Name and channel lookups ---
    def name_to_element(self, name):
        # loop over the map of AuxDet names to determine which AuxDet we have
        for index, ad_name in sorted(self.ad_geo_to_name.items()):
            if ad_name == name:
                return index
        raise NoSuchElement(name)

    def channel_to_element(self, name, channel):
        """The channel is not needed to identify the AuxDet; only the name is."""
        return self.name_to_element(name)

    def channel_to_sensitive_element(self, name, channel):
        """
        Resolves a detector name and channel.

        Returns:
            tuple: (index of the AuxDet, index of its sensitive volume)
        """
        index = self.name_to_element(name)

        table = self.ad_geo_to_channel_and_sv.get(index)
        if table is None:
            raise NoSensitiveTable(index)
        if not 0 <= channel < len(table):
            raise ChannelOutOfRange(channel, index, len(table))
        return index, table[channel][1]


class OneToOneAuxDetChannelMapAlg(AuxDetChannelMapAlg):
    """Channel k of each AuxDet reads out its k-th sensitive volume."""

    def initialize(self, aux_dets):
        self.uninitialize()
        for index, aux_det in enumerate(aux_dets):
            self.ad_geo_to_name[index] = aux_det.name
            self.ad_geo_to_channel_and_sv[index] = [
                (channel, channel) for channel in range(aux_det.nsensitive_volume())
            ]
        logger.debug("Channel map initialized for %d auxiliary detectors", len(aux_dets))
