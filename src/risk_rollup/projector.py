"""View Projector - display value and missing-data reason per view mode.

The same raw aggregates (gross, net, appetite) are projected into one
displayed number. When the number cannot be shown, the projector says
why, in words a risk manager understands.
"""

from typing import Optional

from .leaf_scorer import finite_or_none, round_one_decimal
from .schema import NetStatus, ViewMode

NO_GROSS_REASON = "No gross score assessed"
NO_NET_REASON = "No net score (no controls assessed)"
UNSCORED_CONTROLS_REASON = "Controls assigned but none scored yet"
NO_GROSS_OR_NET_REASON = "No gross or net scores assessed"
NO_APPETITE_REASON = "No risk appetite set"
NO_GROSS_OR_APPETITE_REASON = "No gross score or appetite set"


class ViewProjector:
    """Projects raw aggregates onto the active view mode."""

    def __init__(self, view_mode: ViewMode):
        self.view_mode = view_mode

    def project(
        self,
        gross: Optional[float],
        net: Optional[float],
        appetite: Optional[float],
        net_status: NetStatus = NetStatus.NO_CONTROLS,
    ) -> tuple[Optional[float], Optional[str]]:
        """Return (display_value, missing_data_reason).

        Exactly one of the two is None.
        """
        gross = finite_or_none(gross)
        net = finite_or_none(net)
        appetite = finite_or_none(appetite)

        value = self._display_value(gross, net, appetite)
        if value is not None:
            return value, None
        return None, self._missing_reason(gross, net, appetite, net_status)

    def _display_value(
        self,
        gross: Optional[float],
        net: Optional[float],
        appetite: Optional[float],
    ) -> Optional[float]:
        if self.view_mode == ViewMode.GROSS:
            return gross
        if self.view_mode == ViewMode.NET:
            return net
        if self.view_mode == ViewMode.DELTA_GROSS_NET:
            if gross is not None and net is not None:
                return round_one_decimal(gross - net)
            return None
        if self.view_mode == ViewMode.DELTA_VS_APPETITE:
            if gross is not None and appetite is not None:
                return round_one_decimal(gross - appetite)
            return None
        return None

    def _missing_reason(
        self,
        gross: Optional[float],
        net: Optional[float],
        appetite: Optional[float],
        net_status: NetStatus,
    ) -> str:
        net_reason = (
            UNSCORED_CONTROLS_REASON
            if net_status == NetStatus.UNSCORED_CONTROLS
            else NO_NET_REASON
        )

        if self.view_mode == ViewMode.GROSS:
            return NO_GROSS_REASON
        if self.view_mode == ViewMode.NET:
            return net_reason
        if self.view_mode == ViewMode.DELTA_GROSS_NET:
            if gross is None and net is None:
                return NO_GROSS_OR_NET_REASON
            if gross is None:
                return NO_GROSS_REASON
            return net_reason
        # delta-vs-appetite
        if gross is None and appetite is None:
            return NO_GROSS_OR_APPETITE_REASON
        if gross is None:
            return NO_GROSS_REASON
        return NO_APPETITE_REASON


def project(
    gross: Optional[float],
    net: Optional[float],
    appetite: Optional[float],
    view_mode: ViewMode,
    net_status: NetStatus = NetStatus.NO_CONTROLS,
) -> tuple[Optional[float], Optional[str]]:
    """Functional form of ViewProjector.project."""
    return ViewProjector(view_mode).project(gross, net, appetite, net_status)
