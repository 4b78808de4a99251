"""
Vehicle type enumeration.

Defines the vehicle profiles known to the route optimizer.
"""

import enum


class VehicleType(str, enum.Enum):
    """
    Vehicle type enumeration.

    GENERIC is the profile used when a request does not name a vehicle type.
    """
    GENERIC = "generic"
    MOTORCYCLE = "motorcycle"
    CAR = "car"
    VAN = "van"
    TRUCK = "truck"
    REFRIGERATED = "refrigerated"
    HEAVY_TRUCK = "heavy_truck"


# Numeric flag fed to the prediction model
VEHICLE_TYPE_FLAGS = {
    VehicleType.GENERIC: 0.0,
    VehicleType.MOTORCYCLE: 1.0,
    VehicleType.CAR: 2.0,
    VehicleType.VAN: 3.0,
    VehicleType.TRUCK: 4.0,
    VehicleType.REFRIGERATED: 5.0,
    VehicleType.HEAVY_TRUCK: 6.0,
}
