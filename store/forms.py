# store/forms.py
from decimal import Decimal, InvalidOperation
from django import forms
from .models import Product


def parse_price(raw: str, currency_code: str = "") -> Decimal:
    """
    Turns strings like 'AED 1,234.50', '36.9', '36,90', '1.234,56' into a
    2-place Decimal.
      - strips the currency code and spaces
      - when both separators appear, the last one is the decimal point
    """
    s = (raw or "").strip()
    if not s:
        return Decimal("0.00")
    if currency_code:
        s = s.replace(currency_code.upper(), "")
    s = s.replace(" ", "")

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")

    try:
        val = Decimal(s)
    except InvalidOperation:
        raise forms.ValidationError("Invalid amount. Use something like 129.90.")

    if val < 0:
        raise forms.ValidationError("Price cannot be negative.")

    return val.quantize(Decimal("0.01"))


class ProductAdminForm(forms.ModelForm):
    """
    Price is typed as text (accepts 36, 36.9, 'AED 1,234.50') and keywords
    as one comma-separated line.
    """
    price = forms.CharField(label="Price", help_text="E.g. 129.90")
    old_price = forms.CharField(label="Old price", required=False)

    class Meta:
        model = Product
        fields = "__all__"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance.pk:
            self.initial["price"] = f"{self.instance.price:.2f}"
            if self.instance.old_price is not None:
                self.initial["old_price"] = f"{self.instance.old_price:.2f}"

        if "keywords" in self.fields:
            self.fields["keywords"].widget = forms.TextInput(attrs={"size": 80})
            self.fields["keywords"].help_text = "Comma separated."

    def _currency(self) -> str:
        return (self.data.get("currency_code") or self.instance.currency_code or "").strip()

    def clean_price(self):
        return parse_price(self.cleaned_data.get("price"), self._currency())

    def clean_old_price(self):
        raw = (self.cleaned_data.get("old_price") or "").strip()
        if not raw:
            return None
        return parse_price(raw, self._currency())

    def clean_keywords(self):
        raw = self.cleaned_data.get("keywords") or ""
        return ", ".join(k.strip() for k in raw.split(",") if k.strip())

    def clean_currency_code(self):
        return (self.cleaned_data.get("currency_code") or "").strip().upper()

    def clean_country_code(self):
        return (self.cleaned_data.get("country_code") or "").strip().upper()
