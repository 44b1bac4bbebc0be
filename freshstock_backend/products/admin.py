# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules (audit-safe stock):

- Products are created and edited here; never deleted (use the
  discontinue / pause / activate actions).
- Stock comes in as StockBatch rows. NEW inline rows are not saved
  directly; they are routed through receive_batch() so intake rules hold.
- Existing StockBatch rows are immutable and cannot be edited or deleted.
- StockMovement is an append-only ledger: view-only.

Important:
- Validation MUST happen inside InlineFormSet.clean() so Django admin can render
  inline errors on the page (instead of crashing into a ValidationError screen).
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.forms.models import BaseInlineFormSet
from django.utils import timezone

from products.conf import inventory_setting
from products.models import Product, StockBatch, StockMovement
from products.services.exceptions import InventoryServiceError
from products.services.stock_audit import mark_checked
from products.services.stock_intake import receive_batch


def _is_blank_new_row(cd: dict) -> bool:
    return (
        not (cd.get("batch_number") or "").strip()
        and not cd.get("expiry_date")
        and cd.get("quantity_received") in (None, "", 0)
    )


# =====================================================
# INLINE FORMSET (VALIDATION LIVES HERE)
# =====================================================

class StockBatchInlineFormSet(BaseInlineFormSet):
    def clean(self):
        super().clean()

        parent_product = getattr(self, "instance", None)
        any_errors = False

        for form in self.forms:
            cd = getattr(form, "cleaned_data", None)
            if cd is None:
                continue

            if cd.get("DELETE"):
                form.add_error(None, "Stock batches are audit artifacts and cannot be deleted.")
                any_errors = True
                continue

            inst = getattr(form, "instance", None)
            if inst is not None and not inst._state.adding:
                if form.has_changed():
                    form.add_error(
                        None,
                        "Existing StockBatch rows are immutable. "
                        "Receive a new batch instead of editing a past delivery.",
                    )
                    any_errors = True
                continue

            if _is_blank_new_row(cd):
                continue

            if getattr(parent_product, "status", None) == Product.Status.DISCONTINUED:
                form.add_error(None, "Discontinued products cannot receive stock.")
                any_errors = True
                continue

            expiry_date = cd.get("expiry_date")
            if not expiry_date:
                form.add_error("expiry_date", "expiry_date is required for stock intake.")
                any_errors = True

            qty = cd.get("quantity_received")
            if qty in (None, "") or int(qty) <= 0:
                form.add_error("quantity_received", "quantity_received must be > 0.")
                any_errors = True

            received_date = cd.get("received_date")
            if expiry_date and received_date and expiry_date < received_date:
                form.add_error("expiry_date", "expiry_date cannot be earlier than received_date.")
                any_errors = True

            batch_number = (cd.get("batch_number") or "").strip()
            if batch_number and parent_product is not None and parent_product.pk:
                if StockBatch.objects.filter(
                    product_id=parent_product.pk, batch_number=batch_number
                ).exists():
                    form.add_error("batch_number", "This batch_number already exists for this product.")
                    any_errors = True

        if any_errors:
            raise ValidationError("Please correct the stock intake errors below.")


# =====================================================
# STOCK BATCH INLINE
# =====================================================

class StockBatchInline(admin.TabularInline):
    model = StockBatch
    formset = StockBatchInlineFormSet

    extra = 1
    can_delete = False
    show_change_link = False

    fields = (
        "batch_number",
        "received_date",
        "expiry_date",
        "quantity_received",
        "quantity_remaining",
        "last_checked_at",
    )
    readonly_fields = ("quantity_remaining", "last_checked_at")


# =====================================================
# PRODUCT
# =====================================================

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "barcode",
        "name",
        "unit_price",
        "units_per_package",
        "status",
        "sellable_quantity",
        "created_at",
    )
    list_filter = ("status", "created_at")
    search_fields = ("barcode", "name")
    ordering = ("name",)
    readonly_fields = ("status", "created_at", "updated_at")
    actions = ("discontinue_products", "pause_products", "activate_products")

    inlines = [StockBatchInline]

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Discontinue selected products")
    def discontinue_products(self, request, queryset):
        for product in queryset:
            product.discontinue()

    @admin.action(description="Pause ordering for selected products")
    def pause_products(self, request, queryset):
        for product in queryset:
            product.pause()

    @admin.action(description="Activate selected products")
    def activate_products(self, request, queryset):
        for product in queryset:
            product.activate()

    def save_formset(self, request, form, formset, change):
        """
        Route NEW StockBatch rows through receive_batch().

        Django admin expects new_objects/changed_objects/deleted_objects to exist.
        """
        if formset.model is not StockBatch:
            return super().save_formset(request, form, formset, change)

        parent_product = form.instance
        created_batches = []

        for f in getattr(formset, "forms", []):
            cd = getattr(f, "cleaned_data", None)
            if not cd or cd.get("DELETE"):
                continue
            if not f.instance._state.adding or _is_blank_new_row(cd):
                continue

            record = receive_batch(
                product=parent_product,
                quantity=int(cd["quantity_received"]),
                expiry_date=cd["expiry_date"],
                received_date=cd.get("received_date"),
                batch_number=cd.get("batch_number"),
            )
            created_batches.append(StockBatch.objects.get(pk=record.id))

        formset.new_objects = created_batches
        formset.changed_objects = []
        formset.deleted_objects = []


# =====================================================
# STOCK BATCH (VIEW-ONLY LIST)
# =====================================================

@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    """
    View-only batch list. The only write is the "mark as checked" action,
    which records a physical inspection.
    """

    list_display = (
        "product",
        "batch_number",
        "received_date",
        "expiry_date",
        "quantity_received",
        "quantity_remaining",
        "expiry_status",
        "last_checked_at",
    )
    list_filter = ("expiry_date", "received_date")
    search_fields = ("batch_number", "product__name", "product__barcode")
    ordering = ("expiry_date", "id")
    list_select_related = ("product",)
    actions = ("mark_batches_checked",)

    readonly_fields = (
        "product",
        "batch_number",
        "received_date",
        "expiry_date",
        "quantity_received",
        "quantity_remaining",
        "last_checked_at",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False if obj else True

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Mark selected batches as checked")
    def mark_batches_checked(self, request, queryset):
        checked_at = timezone.now()
        for batch in queryset:
            try:
                mark_checked(batch_id=batch.id, checked_at=checked_at)
            except InventoryServiceError as exc:
                self.message_user(request, str(exc), level=messages.ERROR)
                return
        self.message_user(request, f"{queryset.count()} batch(es) marked as checked.")

    @admin.display(description="Expiry Status")
    def expiry_status(self, obj):
        today = timezone.localdate()

        if obj.expiry_date < today:
            return "EXPIRED"

        soon_days = inventory_setting("AUDIT_EXPIRING_WITHIN_DAYS")
        if obj.expiry_date <= today + timedelta(days=soon_days):
            return "SOON"

        return "OK"


# =====================================================
# STOCK MOVEMENT (APPEND-ONLY LEDGER)
# =====================================================

@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("occurred_at", "product", "batch", "reason", "quantity", "note")
    list_filter = ("reason", "occurred_at")
    search_fields = ("product__name", "batch__batch_number", "note")
    ordering = ("-occurred_at", "-id")
    list_select_related = ("product", "batch")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
