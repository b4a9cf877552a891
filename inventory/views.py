"""Inventory API endpoints.

Reads (variant listing, stock checks) are public; every mutation and the
ledger views require a staff user. Service errors map to HTTP statuses in
``_error_response``.
"""

from django.db import connection
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import (
    IdempotencyConflict,
    InsufficientStock,
    InvalidInput,
    InventoryError,
    StorageError,
    VariantNotFound,
)
from .filters import InventoryTransactionFilter, LowStockFilter
from .selectors import (
    check_stock,
    get_product_variants,
    get_product_variants_with_stock,
    get_variant_by_id,
    ledger_discrepancies,
    list_transactions,
    low_stock_variants,
    out_of_stock_variants,
    product_inventory_total,
)
from .serializers import (
    AdjustmentSerializer,
    BulkSetCountsSerializer,
    CreateVariantsSerializer,
    InventoryTransactionSerializer,
    ProductVariantSerializer,
    ReconciliationOutcomeSerializer,
    RecordSalesSerializer,
    StockCheckResultSerializer,
    StockCheckSerializer,
    UpdateVariantSerializer,
    VariantStockSerializer,
)
from .services import apply_adjustment, bulk_set_counts, create_variants, deactivate_variant, record_sales, update_variant
from .throttling import InventoryScopedRateThrottle

ERROR_STATUS = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    VariantNotFound: status.HTTP_404_NOT_FOUND,
    InsufficientStock: status.HTTP_409_CONFLICT,
    IdempotencyConflict: status.HTTP_409_CONFLICT,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

ErrorResponse = inline_serializer(
    name="InventoryError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)


def _error_response(exc: InventoryError) -> Response:
    code = next(
        (status_code for cls, status_code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, InsufficientStock) and exc.available is not None:
        body["available"] = exc.available
    return Response(body, status=code)


def _acting_user_id(request) -> str:
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return str(user.pk)
    return ""


class InventoryHealthView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = []

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory health",
        description="Healthcheck for the inventory app, including database reachability.",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "inventory"})],
    )
    def get(self, request):
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        return Response({"status": "ok", "app": "inventory"})


class ProductVariantsView(APIView):
    """List, provision and bulk-reconcile the variants of one product."""

    throttle_classes = [InventoryScopedRateThrottle]

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAdminUser()]

    def get_throttles(self):
        self.throttle_scope = "inventory" if self.request.method == "GET" else "inventory_write"
        return super().get_throttles()

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List product variants",
        description="All variants of a product, sorted by color then size. "
        "Pass `include_stock=true` to add `available_stock`, `is_low_stock` and `is_out_of_stock`.",
        parameters=[OpenApiParameter(name="include_stock", required=False, type=bool)],
        responses={200: VariantStockSerializer(many=True)},
    )
    def get(self, request, product_id: str):
        include_stock = str(request.query_params.get("include_stock", "")).lower() in ("1", "true", "yes")
        try:
            if include_stock:
                data = VariantStockSerializer(get_product_variants_with_stock(product_id), many=True).data
            else:
                data = ProductVariantSerializer(get_product_variants(product_id), many=True).data
        except InventoryError as exc:
            return _error_response(exc)
        return Response({"results": data}, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Create variants",
        description="Creates one variant per color/size combination not yet present. Existing pairs are skipped. "
        "Answers 201 when variants were created, 200 when every pair already existed.",
        request=CreateVariantsSerializer,
        responses={201: ProductVariantSerializer(many=True), 200: ProductVariantSerializer(many=True), 400: ErrorResponse},
        examples=[
            OpenApiExample(
                "Provision",
                value={
                    "colors": ["Red", "Blue"],
                    "sizes": ["S", "M"],
                    "inventory_count": 10,
                    "variant_inventory": [{"color": "Red", "size": "S", "inventory_count": 25}],
                },
                request_only=True,
            )
        ],
    )
    def post(self, request, product_id: str):
        serializer = CreateVariantsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            created = create_variants(
                product_id=product_id,
                colors=data["colors"],
                sizes=data["sizes"],
                initial_count=data["inventory_count"],
                initial_counts=data["initial_counts"],
                low_stock_threshold=data.get("low_stock_threshold"),
                price_adjustment=data.get("price_adjustment"),
            )
        except InventoryError as exc:
            return _error_response(exc)
        # Nothing new when every requested pair already exists
        code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        return Response({"results": ProductVariantSerializer(created, many=True).data}, status=code)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Bulk set inventory counts",
        description="Reconciles each listed variant to an absolute count. "
        "Each target is processed independently; inspect every outcome's `status`.",
        request=BulkSetCountsSerializer,
        responses={200: ReconciliationOutcomeSerializer(many=True), 400: ErrorResponse},
        examples=[
            OpenApiExample(
                "Outcomes",
                value={
                    "results": [
                        {"color": "Red", "size": "S", "status": "updated", "variant": {"id": 1}},
                        {"color": "Green", "size": "S", "status": "skipped", "variant": None},
                    ]
                },
                response_only=True,
            )
        ],
    )
    def put(self, request, product_id: str):
        serializer = BulkSetCountsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            outcomes = bulk_set_counts(
                product_id=product_id,
                targets=serializer.to_targets(),
                acting_user_id=_acting_user_id(request),
            )
        except InventoryError as exc:
            return _error_response(exc)
        return Response({"results": ReconciliationOutcomeSerializer(outcomes, many=True).data})


class VariantDetailView(APIView):
    """Retrieve, edit (non-stock attributes) or deactivate a variant."""

    throttle_classes = [InventoryScopedRateThrottle]

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAdminUser()]

    def get_throttles(self):
        self.throttle_scope = "inventory" if self.request.method == "GET" else "inventory_write"
        return super().get_throttles()

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Get variant",
        responses={200: ProductVariantSerializer, 404: ErrorResponse},
    )
    def get(self, request, variant_id: int):
        try:
            variant = get_variant_by_id(variant_id)
        except InventoryError as exc:
            return _error_response(exc)
        return Response(ProductVariantSerializer(variant).data)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Update variant attributes",
        description="Edits `low_stock_threshold`, `price_adjustment` or `is_active`. "
        "Stock counts cannot be set here; use adjustments or bulk set.",
        request=UpdateVariantSerializer,
        responses={200: ProductVariantSerializer, 400: ErrorResponse, 404: ErrorResponse},
    )
    def patch(self, request, variant_id: int):
        serializer = UpdateVariantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            variant = update_variant(variant_id=variant_id, **serializer.validated_data)
        except InventoryError as exc:
            return _error_response(exc)
        return Response(ProductVariantSerializer(variant).data)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Deactivate variant",
        description="Soft delete: marks the variant inactive. Variants are never removed.",
        responses={200: ProductVariantSerializer, 404: ErrorResponse},
    )
    def delete(self, request, variant_id: int):
        try:
            variant = deactivate_variant(variant_id=variant_id)
        except InventoryError as exc:
            return _error_response(exc)
        return Response(ProductVariantSerializer(variant).data)


class AdjustmentView(APIView):
    """Apply a signed stock change to one variant.

    Idempotent when `Idempotency-Key` is provided: a retried request returns the
    current variant without applying the change twice.
    """

    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Apply stock adjustment",
        request=AdjustmentSerializer,
        parameters=[
            OpenApiParameter(
                name="Idempotency-Key",
                location=OpenApiParameter.HEADER,
                required=False,
                description="Makes the adjustment safe to retry",
                type=str,
            )
        ],
        responses={200: ProductVariantSerializer, 400: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        examples=[
            OpenApiExample(
                "Restock",
                value={"product_id": "p-1", "color": "Red", "size": "M", "quantity_change": 5, "transaction_type": "restock"},
                request_only=True,
            ),
            OpenApiExample(
                "Insufficient stock",
                value={"detail": "Insufficient stock for p-1-RED-M: requested 4, available 3", "code": "insufficient_stock"},
                response_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = AdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            command = serializer.to_command(
                acting_user_id=_acting_user_id(request),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
            variant = apply_adjustment(command)
        except InventoryError as exc:
            return _error_response(exc)
        return Response(ProductVariantSerializer(variant).data, status=status.HTTP_200_OK)


class StockCheckView(APIView):
    """Non-binding availability check for a batch of variant lines."""

    permission_classes = [AllowAny]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Check stock",
        description="Reports whether current stock covers each requested quantity. Creates no reservation.",
        request=StockCheckSerializer,
        responses={
            200: inline_serializer(
                name="StockCheckResponse",
                fields={
                    "available": rf_serializers.BooleanField(),
                    "results": StockCheckResultSerializer(many=True),
                    "unavailable": StockCheckResultSerializer(many=True),
                },
            ),
            400: ErrorResponse,
        },
    )
    def post(self, request):
        serializer = StockCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            results = check_stock(serializer.to_requests())
        except InventoryError as exc:
            return _error_response(exc)
        unavailable = [r for r in results if not r.available]
        return Response(
            {
                "available": not unavailable,
                "results": StockCheckResultSerializer(results, many=True).data,
                "unavailable": StockCheckResultSerializer(unavailable, many=True).data,
            }
        )


class RecordSalesView(APIView):
    """Consume stock for an order's lines in one all-or-nothing step."""

    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Record sales",
        request=RecordSalesSerializer,
        responses={200: ProductVariantSerializer(many=True), 404: ErrorResponse, 409: ErrorResponse},
    )
    def post(self, request):
        serializer = RecordSalesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            variants = record_sales(
                lines=serializer.to_lines(),
                reference=serializer.validated_data["reference"],
                acting_user_id=_acting_user_id(request),
            )
        except InventoryError as exc:
            return _error_response(exc)
        return Response({"results": ProductVariantSerializer(variants, many=True).data})


class LowStockListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"
    serializer_class = ProductVariantSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = LowStockFilter

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List low-stock variants",
        description="Active variants at or below their low-stock threshold, or at or below `threshold` when given.",
        parameters=[OpenApiParameter(name="threshold", required=False, type=int)],
    )
    def get(self, request, *args, **kwargs):
        try:
            return super().get(request, *args, **kwargs)
        except InventoryError as exc:
            return _error_response(exc)

    def get_queryset(self):
        raw = self.request.query_params.get("threshold")
        threshold = None
        if raw not in (None, ""):
            try:
                threshold = int(raw)
            except ValueError:
                raise InvalidInput("threshold must be an integer") from None
        return low_stock_variants(threshold=threshold)


class OutOfStockListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"
    serializer_class = ProductVariantSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = LowStockFilter

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List out-of-stock variants",
        description="Active variants with an inventory count of zero.",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return out_of_stock_variants()


class ProductInventoryView(APIView):
    """Total stock of a product across its variants."""

    permission_classes = [AllowAny]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Product inventory total",
        description="`total_inventory` sums every variant; `active_inventory` only the active ones.",
        responses={
            200: inline_serializer(
                name="ProductInventory",
                fields={
                    "product_id": rf_serializers.CharField(),
                    "total_inventory": rf_serializers.IntegerField(),
                    "active_inventory": rf_serializers.IntegerField(),
                    "variant_count": rf_serializers.IntegerField(),
                },
            ),
            400: ErrorResponse,
        },
    )
    def get(self, request, product_id: str):
        try:
            totals = product_inventory_total(product_id)
        except InventoryError as exc:
            return _error_response(exc)
        return Response(totals)


class TransactionListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"
    serializer_class = InventoryTransactionSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = InventoryTransactionFilter

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List inventory transactions",
        description="Ledger entries, newest first. "
        "Filters: product_id, variant, sku, transaction_type, created_after, created_before (ISO).",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return list_transactions()


class LedgerAuditView(APIView):
    permission_classes = [IsAdminUser]
    throttle_classes = [InventoryScopedRateThrottle]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Audit ledger against counters",
        description="Variants whose count differs from initial count plus the sum of their ledger entries.",
        parameters=[OpenApiParameter(name="product_id", required=False, type=str)],
    )
    def get(self, request):
        try:
            rows = ledger_discrepancies(product_id=request.query_params.get("product_id") or None)
        except InventoryError as exc:
            return _error_response(exc)
        return Response({"consistent": not rows, "discrepancies": rows})


# EOF
