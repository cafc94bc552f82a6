"""
Shared constants for services
"""

# Appointment statuses
APPOINTMENT_PENDING = 0
APPOINTMENT_CONFIRMED = 1
APPOINTMENT_COMPLETED = 2
APPOINTMENT_CANCELLED = 3

APPOINTMENT_STATUS_NAMES = {
    APPOINTMENT_PENDING: "pending",
    APPOINTMENT_CONFIRMED: "confirmed",
    APPOINTMENT_COMPLETED: "completed",
    APPOINTMENT_CANCELLED: "cancelled",
}

# Recommendation reasons
POPULAR_SERVICE_REASON = "Popular service"
SIMILAR_CUSTOMERS_REASON = "Recommended based on the behavior of {count} similar customers"
ALREADY_USED_SUFFIX = " (used {count} times)"

# Algorithm names
ALGORITHM_KNN = "knn"
ALGORITHM_POPULARITY = "popularity"
