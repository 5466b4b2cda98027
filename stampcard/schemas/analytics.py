from datetime import date

from pydantic import BaseModel


class BusinessSummaryOut(BaseModel):
    businessId: str
    days: int
    stamps: int
    couponsRedeemed: int
    totalCouponsRedeemed: int
    users: int
    newUsers: int


class OverviewData(BaseModel):
    totalUsers: int
    # number of returning users, not a percentage
    returnacyRate: int
    totalCouponsRedeemed: int
    weekTotalCouponsRedeemed: int
    weekTotalStamps: int
    weekNewUsers: int
    monthTotalStamps: int
    monthTotalCouponsRedeemed: int
    averageUserFrequency: int


class OverviewOut(BaseModel):
    message: str
    data: OverviewData


class DailyTransactionsData(BaseModel):
    dates: list[date]
    dailyTransactions: list[int]
    dailyStamps: list[int]


class DailyTransactionsOut(BaseModel):
    message: str
    data: DailyTransactionsData
