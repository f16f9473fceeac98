"""
Brooks-Corey unsaturated hydraulic conductivity.

K(θ) = K_s * (θ / φ)^(2/λ + 3)

with the residual moisture content taken as zero, so relative saturation
is θ / φ. Above porosity (which the drainage scheme can produce
transiently) conductivity is capped at its saturated value.

References:
- Brooks, R.H. and Corey, A.T. (1964). Hydraulic properties of porous media.
  Hydrology Paper No. 3, Colorado State University.
- Wigmosta, M.S., Vail, L.W. and Lettenmaier, D.P. (1994). A distributed
  hydrology-vegetation model for complex terrain. Water Resources Research,
  30(6):1665-1679, eq. 41.
"""
from soilflow.core.constants import BROOKS_COREY_OFFSET, BROOKS_COREY_SCALE


def brooks_corey_exponent(pore_size_index: float) -> float:
    """Conductivity exponent 2/λ + 3"""
    return BROOKS_COREY_SCALE / pore_size_index + BROOKS_COREY_OFFSET


def unsaturated_conductivity(
    theta: float,
    porosity: float,
    ks: float,
    pore_size_index: float
) -> float:
    """
    Unsaturated vertical hydraulic conductivity.

    Args:
        theta: Volumetric water content (m³/m³)
        porosity: Porosity (m³/m³)
        ks: Saturated vertical conductivity (m/s)
        pore_size_index: Brooks-Corey pore size distribution index λ

    Returns:
        Conductivity (m/s)
    """
    if theta > porosity:
        return ks

    return ks * (theta / porosity) ** brooks_corey_exponent(pore_size_index)
